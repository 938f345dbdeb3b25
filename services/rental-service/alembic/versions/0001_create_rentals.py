from alembic import op
import sqlalchemy as sa

revision = "0001"
down_revision = None
branch_labels = None
depends_on = None

def upgrade():
    # vehicles/customers are owned by the catalog services; created here only
    # when this service runs against its own database
    op.create_table(
        "vehicles",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("plate", sa.String(), nullable=False),
        sa.Column("brand", sa.String(), nullable=True),
        sa.Column("model", sa.String(), nullable=True),
        sa.Column("daily_rate", sa.Numeric(10, 2), nullable=False),
        sa.Column("available", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("status", sa.String(), nullable=False, server_default="AVAILABLE"),
        sa.CheckConstraint("daily_rate > 0", name="ck_vehicles_daily_rate_positive"),
    )
    op.create_index("ix_vehicles_plate", "vehicles", ["plate"], unique=True)

    op.create_table(
        "customers",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("email", sa.String(), nullable=True),
    )

    op.create_table(
        "rentals",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("vehicle_id", sa.Integer(), sa.ForeignKey("vehicles.id"), nullable=False),
        sa.Column("customer_id", sa.Integer(), sa.ForeignKey("customers.id"), nullable=False),
        sa.Column("start_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("end_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("actual_return_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("status", sa.String(), nullable=False),
        sa.Column("total_amount", sa.Numeric(10, 2), nullable=False),
        sa.Column("original_total_amount", sa.Numeric(10, 2), nullable=True),
        sa.Column("early_termination_fee", sa.Numeric(10, 2), nullable=True),
        sa.Column("ended_early", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("notes", sa.String(1000), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint("end_date > start_date", name="ck_rentals_end_after_start"),
        sa.CheckConstraint("total_amount > 0", name="ck_rentals_total_positive"),
    )
    op.create_index("ix_rentals_status", "rentals", ["status"], unique=False)
    op.create_index("ix_rentals_vehicle_id_status", "rentals", ["vehicle_id", "status"], unique=False)
    op.create_index("ix_rentals_customer_id_status", "rentals", ["customer_id", "status"], unique=False)

def downgrade():
    op.drop_index("ix_rentals_customer_id_status", table_name="rentals")
    op.drop_index("ix_rentals_vehicle_id_status", table_name="rentals")
    op.drop_index("ix_rentals_status", table_name="rentals")
    op.drop_table("rentals")
    op.drop_table("customers")
    op.drop_index("ix_vehicles_plate", table_name="vehicles")
    op.drop_table("vehicles")
