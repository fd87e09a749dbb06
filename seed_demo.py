# seed_demo.py
import os
from datetime import date, timedelta

import requests

BASE_URL = os.getenv("LIBRARY_BASE_URL", "http://localhost:3000")

BOOKS = [
    {
        "title": "1984",
        "author": "George Orwell",
        "publicationYear": 1949,
        "gender": "Ficção Científica",
        "qttEstoque": 3,
    },
    {
        "title": "Dom Casmurro",
        "author": "Machado de Assis",
        "publicationYear": 1899,
        "gender": "Romance",
        "qttEstoque": 5,
    },
    {
        "title": "Harry Potter e a Pedra Filosofal",
        "author": "J.K. Rowling",
        "publicationYear": 1997,
        "gender": "Fantasia",
        "qttEstoque": 4,
    },
    {
        "title": "O Código Da Vinci",
        "author": "Dan Brown",
        "publicationYear": 2003,
        "gender": "Thriller",
        "qttEstoque": 2,
    },
    {
        "title": "Steve Jobs",
        "author": "Walter Isaacson",
        "publicationYear": 2011,
        "gender": "Biografia",
        "qttEstoque": 1,
    },
]

CLIENTS = [
    {
        "name": "João Silva",
        "email": "joao.silva@email.com",
        "phone": "(11) 98765-4321",
    },
    {
        "name": "Maria Santos",
        "email": "maria.santos@email.com",
        "phone": "(11) 91234-5678",
    },
    {
        "name": "Pedro Oliveira",
        "email": "pedro.oliveira@email.com",
        "phone": "(11) 99999-8888",
    },
]


def check_service(url):
    """Hit /api/health and return True/False."""
    health_url = f"{url.rstrip('/')}/api/health"
    try:
        r = requests.get(health_url, timeout=3)
        print(f"[CHECK] {health_url} -> {r.status_code}")
        return r.ok
    except requests.RequestException as e:
        print(f"[ERROR] service not reachable at {health_url}: {e}")
        return False


def already_seeded(url):
    resp = requests.get(f"{url.rstrip('/')}/api/books", timeout=5)
    resp.raise_for_status()
    return len(resp.json()) > 0


def post_all(url, path, items, label):
    print(f"\n== Creating {label} ==")
    created = []
    for i, item in enumerate(items, start=1):
        resp = requests.post(f"{url.rstrip('/')}{path}", json=item, timeout=5)
        name = item.get("title") or item.get("name") or f"book {item.get('bookId')}"
        print(f"  [{i:02}] {name} -> {resp.status_code}")
        if resp.ok:
            created.append(resp.json())
        else:
            print(f"      Body: {resp.text.strip()}")
    return created


def seed(url=BASE_URL):
    """
    Seed a running service through its public API.

    Returns a summary dict, or None when the catalog already has books.
    """
    if already_seeded(url):
        print("Catalog already has books, skipping seed.")
        return None

    books = post_all(url, "/api/books", BOOKS, "books")
    clients = post_all(url, "/api/clients", CLIENTS, "clients")

    loans = []
    if books and clients:
        loan = {
            "bookId": books[0]["id"],
            "clientId": clients[0]["id"],
            "returnDate": (date.today() + timedelta(days=14)).isoformat(),
        }
        loans = post_all(url, "/api/loans", [loan], "loans")

    return {"books": len(books), "clients": len(clients), "loans": len(loans)}


def main():
    print("Checking library service...")
    if not check_service(BASE_URL):
        print(f"\nLibrary service is not reachable at {BASE_URL}.")
        return

    summary = seed(BASE_URL)

    print("\nDone.")
    if summary:
        print(
            f"Created {summary['books']} books, {summary['clients']} clients "
            f"and {summary['loans']} loan(s)."
        )
    print("Try hitting:")
    print(f"  {BASE_URL}/api/books")
    print(f"  {BASE_URL}/api/loans")


if __name__ == "__main__":
    main()
