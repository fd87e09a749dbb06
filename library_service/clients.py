import logging

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from .db import transaction
from .errors import DuplicateEmail, HasOpenLoans
from .models import Client
from .repositories import ClientRepository, LoanRepository
from .schemas import ClientCreate, ClientUpdate

logger = logging.getLogger(__name__)


class ClientService:
    def __init__(self, session: Session):
        self.session = session
        self.clients = ClientRepository(session)
        self.loans = LoanRepository(session)

    def _check_email(self, email, client_id=None):
        existing = self.clients.by_email(email)
        if existing is not None and existing.id != client_id:
            raise DuplicateEmail()

    def create(self, data: ClientCreate) -> Client:
        self._check_email(data.email)
        client = Client(**data.model_dump())
        try:
            with transaction(self.session):
                self.clients.add(client)
                self.session.flush()
                client_id = client.id
        except IntegrityError as exc:
            # Lost a race on the unique email index
            raise DuplicateEmail() from exc

        logger.info("Created client %s", client_id)
        return self.clients.get_or_raise(client_id)

    def update(self, client_id, data: ClientUpdate) -> Client:
        changes = data.model_dump(exclude_unset=True)
        try:
            with transaction(self.session):
                client = self.clients.get_or_raise(client_id)
                if changes.get("email"):
                    self._check_email(changes["email"], client_id)
                for field, value in changes.items():
                    if value is None and field in ("name", "email"):
                        continue
                    setattr(client, field, value)
        except IntegrityError as exc:
            raise DuplicateEmail() from exc

        logger.info("Updated client %s", client_id)
        return self.clients.get_or_raise(client_id)

    def delete(self, client_id) -> None:
        with transaction(self.session):
            client = self.clients.get_or_raise(client_id)
            if self.loans.open_for_client(client_id):
                raise HasOpenLoans("Client has open loans and cannot be deleted")
            self.clients.delete(client)

        logger.info("Deleted client %s", client_id)
