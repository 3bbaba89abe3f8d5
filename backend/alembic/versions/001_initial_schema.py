"""Initial schema: flights, ticket classes, seat inventory, passengers, tickets, parameters.

Revision ID: 001
Revises: None
Create Date: 2026-10-19
"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    ]


def upgrade() -> None:
    # Flights table
    op.create_table(
        "flights",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("flight_code", sa.String(20), nullable=False),
        sa.Column("departure_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("flight_code", name="uq_flights_flight_code"),
    )
    op.create_index("ix_flights_id", "flights", ["id"])
    # Booking-window checks and the hold sweeper filter on departure time
    op.create_index("ix_flights_departure_time", "flights", ["departure_time"])

    # Ticket classes table
    op.create_table(
        "ticket_classes",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(50), nullable=False),
        sa.Column("seat_prefix", sa.String(2), nullable=False),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("name", name="uq_ticket_classes_name"),
        sa.UniqueConstraint("seat_prefix", name="uq_ticket_classes_seat_prefix"),
    )
    op.create_index("ix_ticket_classes_id", "ticket_classes", ["id"])

    # Seat inventory: remaining_tickets only moves through guarded UPDATEs
    op.create_table(
        "flight_ticket_classes",
        sa.Column("flight_id", sa.Integer(), sa.ForeignKey("flights.id"), primary_key=True),
        sa.Column("ticket_class_id", sa.Integer(), sa.ForeignKey("ticket_classes.id"), primary_key=True),
        sa.Column("total_tickets", sa.Integer(), nullable=False),
        sa.Column("remaining_tickets", sa.Integer(), nullable=False),
        sa.Column("fare", sa.Numeric(10, 2), nullable=False),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.CheckConstraint("remaining_tickets >= 0", name="check_remaining_tickets_non_negative"),
        sa.CheckConstraint("total_tickets > 0", name="check_total_tickets_positive"),
        sa.CheckConstraint("remaining_tickets <= total_tickets", name="check_remaining_lte_total"),
        sa.CheckConstraint("fare >= 0", name="check_inventory_fare_non_negative"),
    )

    # Passengers table
    op.create_table(
        "passengers",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("full_name", sa.String(200), nullable=False),
        sa.Column("citizen_id", sa.String(30), nullable=False),
        sa.Column("email", sa.String(255), nullable=True),
        sa.Column("phone", sa.String(30), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_passengers_id", "passengers", ["id"])
    op.create_index("ix_passengers_citizen_id", "passengers", ["citizen_id"], unique=True)

    # Tickets table
    op.create_table(
        "tickets",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("flight_id", sa.Integer(), sa.ForeignKey("flights.id"), nullable=False),
        sa.Column("ticket_class_id", sa.Integer(), sa.ForeignKey("ticket_classes.id"), nullable=False),
        sa.Column("passenger_id", sa.Integer(), sa.ForeignKey("passengers.id"), nullable=False),
        sa.Column("booking_customer_id", sa.Integer(), nullable=True),
        sa.Column("seat_number", sa.String(7), nullable=False),
        sa.Column("status", sa.String(16), nullable=False),
        sa.Column("fare", sa.Numeric(10, 2), nullable=False),
        sa.Column("confirmation_code", sa.String(32), nullable=False),
        sa.Column("order_id", sa.String(64), nullable=True),
        sa.Column("payment_time", sa.DateTime(timezone=True), nullable=True),
        sa.Column("booked_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("closed_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.CheckConstraint(
            "status IN ('UNPAID', 'PAID', 'CANCELLED', 'EXPIRED')", name="ticket_status"
        ),
        sa.CheckConstraint("fare >= 0", name="check_ticket_fare_non_negative"),
    )
    op.create_index("ix_tickets_id", "tickets", ["id"])
    op.create_index("ix_tickets_flight_id", "tickets", ["flight_id"])
    op.create_index("ix_tickets_passenger_id", "tickets", ["passenger_id"])
    op.create_index("ix_tickets_booking_customer_id", "tickets", ["booking_customer_id"])
    op.create_index("ix_tickets_confirmation_code", "tickets", ["confirmation_code"])
    # A seat is held by at most one live ticket; cancelled/expired seats are reusable
    op.create_index(
        "uq_tickets_active_seat",
        "tickets",
        ["flight_id", "seat_number"],
        unique=True,
        postgresql_where=sa.text("status IN ('UNPAID', 'PAID')"),
        sqlite_where=sa.text("status IN ('UNPAID', 'PAID')"),
    )
    # Sweeper scan: unpaid tickets by hold start
    op.create_index("ix_tickets_status_booked_at", "tickets", ["status", "booked_at"])

    # Parameters table: newest row wins
    op.create_table(
        "parameters",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("min_booking_in_advance_duration", sa.Integer(), nullable=False),
        sa.Column("max_booking_hold_duration", sa.Integer(), nullable=False),
        *_timestamps(),
        sa.CheckConstraint("min_booking_in_advance_duration >= 0", name="check_min_advance_non_negative"),
        sa.CheckConstraint("max_booking_hold_duration > 0", name="check_max_hold_positive"),
    )
    op.create_index("ix_parameters_id", "parameters", ["id"])


def downgrade() -> None:
    op.drop_table("parameters")
    op.drop_table("tickets")
    op.drop_table("passengers")
    op.drop_table("flight_ticket_classes")
    op.drop_table("ticket_classes")
    op.drop_table("flights")
