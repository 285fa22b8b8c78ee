from sqlalchemy.orm import Session

from app.models.customer import Customer


class CustomerRepository:
    def __init__(self, db: Session):
        self.db = db

    def get(self, customer_id: str) -> Customer | None:
        return self.db.get(Customer, customer_id)

    def get_by_email(self, email: str) -> Customer | None:
        return self.db.query(Customer).filter(Customer.email == email.strip().lower()).first()

    def add(self, customer: Customer) -> Customer:
        customer.email = customer.email.strip().lower()
        self.db.add(customer)
        self.db.flush()
        return customer
