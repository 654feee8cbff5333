from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '0001_initial'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        'trips',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('bus_number', sa.String(length=32), nullable=False),
        sa.Column('origin', sa.String(length=120), nullable=False),
        sa.Column('destination', sa.String(length=120), nullable=False),
        sa.Column('departs_at', sa.DateTime(), nullable=False),
        sa.Column('arrives_at', sa.DateTime(), nullable=False),
        sa.Column('price', sa.Numeric(10, 2), nullable=False, comment='Price per seat'),
        sa.Column('total_seats', sa.Integer(), nullable=False),
        sa.Column('available_seats', sa.Integer(), nullable=False),
        sa.Column('is_uncertain', sa.Boolean(), nullable=False, server_default=sa.false(),
                  comment='Departure not guaranteed'),
        sa.Column('created', sa.DateTime(), server_default=sa.func.now()),
        sa.CheckConstraint('total_seats > 0', name='ck_trip_total_positive'),
        sa.CheckConstraint('available_seats >= 0 AND available_seats <= total_seats',
                           name='ck_trip_available_range'),
        sa.CheckConstraint('arrives_at > departs_at', name='ck_trip_arrival_after_departure'),
    )
    op.create_index('ix_trip_route_departure', 'trips', ['origin', 'destination', 'departs_at'])

    op.create_table(
        'bookings',
        sa.Column('id', sa.String(length=16), primary_key=True),
        sa.Column('trip_id', sa.Integer(), sa.ForeignKey('trips.id'), nullable=False),
        sa.Column('owner_id', sa.String(length=64), nullable=True,
                  comment='JWT subject of the user who booked'),
        sa.Column('passenger_name', sa.String(length=120), nullable=False),
        sa.Column('passenger_email', sa.String(length=254), nullable=False),
        sa.Column('passenger_phone', sa.String(length=32), nullable=False),
        sa.Column('seat_numbers', sa.JSON(), nullable=False, comment='Sorted list of seat numbers'),
        sa.Column('total_amount', sa.Numeric(10, 2), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='confirmed',
                  comment='confirmed | cancelled'),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('cancelled_at', sa.DateTime(), nullable=True),
        sa.CheckConstraint("status IN ('confirmed', 'cancelled')", name='ck_booking_status'),
    )
    op.create_index('ix_booking_trip_status', 'bookings', ['trip_id', 'status'])
    op.create_index('ix_booking_owner_created', 'bookings', ['owner_id', 'created_at'])


def downgrade() -> None:
    op.drop_index('ix_booking_owner_created', table_name='bookings')
    op.drop_index('ix_booking_trip_status', table_name='bookings')
    op.drop_table('bookings')
    op.drop_index('ix_trip_route_departure', table_name='trips')
    op.drop_table('trips')
