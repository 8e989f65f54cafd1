from datetime import date, timedelta

from invoicedesk import create_app, create_admin_user, db
from invoicedesk.models import Customer, Invoice

CUSTOMERS = [
    ("Evil Rabbit", "evil@rabbit.com"),
    ("Delba de Oliveira", "delba@oliveira.com"),
    ("Lee Robinson", "lee@robinson.com"),
    ("Michael Novotny", "michael@novotny.com"),
    ("Amy Burns", "amy@burns.com"),
    ("Balazs Orban", "balazs@orban.com"),
]

# (customer index, amount in cents, status, days ago)
INVOICES = [
    (0, 15795, "pending", 3),
    (1, 20348, "pending", 10),
    (4, 3040, "paid", 24),
    (3, 44800, "paid", 31),
    (5, 34577, "pending", 45),
    (2, 54246, "pending", 52),
    (0, 666, "pending", 60),
    (3, 32545, "paid", 71),
    (4, 1250, "paid", 90),
    (5, 8546, "paid", 105),
    (1, 500, "paid", 121),
    (2, 8945, "paid", 150),
    (2, 1000, "paid", 180),
]


def seed_initial_data() -> None:
    """Seed the database with the admin user, customers and invoices."""
    app = create_app([])
    with app.app_context():
        create_admin_user()
        if Customer.query.count():
            print("Customers already present; skipping demo data.")
            return

        customers = [
            Customer(name=name, email=email) for name, email in CUSTOMERS
        ]
        db.session.add_all(customers)
        db.session.flush()

        today = date.today()
        for index, amount, status, days_ago in INVOICES:
            db.session.add(
                Invoice(
                    customer_id=customers[index].id,
                    amount=amount,
                    status=status,
                    date=(today - timedelta(days=days_ago)).isoformat(),
                )
            )
        db.session.commit()
        print("Initial admin user, customers and invoices created.")


if __name__ == "__main__":
    seed_initial_data()
