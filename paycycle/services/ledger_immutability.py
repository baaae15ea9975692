from sqlalchemy import inspect, text

BALANCE_AUDIT_DDL = """
CREATE OR REPLACE FUNCTION balance_audit_entries_block_mutation()
RETURNS trigger AS $$
BEGIN
    RAISE EXCEPTION 'balance_audit_entries is append-only';
END;
$$ LANGUAGE plpgsql;

DROP TRIGGER IF EXISTS trg_balance_audit_entries_block_update ON balance_audit_entries;
CREATE TRIGGER trg_balance_audit_entries_block_update
BEFORE UPDATE ON balance_audit_entries
FOR EACH ROW
EXECUTE FUNCTION balance_audit_entries_block_mutation();

DROP TRIGGER IF EXISTS trg_balance_audit_entries_block_delete ON balance_audit_entries;
CREATE TRIGGER trg_balance_audit_entries_block_delete
BEFORE DELETE ON balance_audit_entries
FOR EACH ROW
EXECUTE FUNCTION balance_audit_entries_block_mutation();
"""

FINALIZED_PAYMENT_DDL = """
CREATE OR REPLACE FUNCTION payment_details_block_finalized_mutation()
RETURNS trigger AS $$
BEGIN
    IF OLD.is_finalize THEN
        RAISE EXCEPTION 'payment_details row % is finalized', OLD.id;
    END IF;
    IF TG_OP = 'DELETE' THEN
        RETURN OLD;
    END IF;
    RETURN NEW;
END;
$$ LANGUAGE plpgsql;

DROP TRIGGER IF EXISTS trg_payment_details_block_finalized_update ON payment_details;
CREATE TRIGGER trg_payment_details_block_finalized_update
BEFORE UPDATE ON payment_details
FOR EACH ROW
EXECUTE FUNCTION payment_details_block_finalized_mutation();

DROP TRIGGER IF EXISTS trg_payment_details_block_finalized_delete ON payment_details;
CREATE TRIGGER trg_payment_details_block_finalized_delete
BEFORE DELETE ON payment_details
FOR EACH ROW
EXECUTE FUNCTION payment_details_block_finalized_mutation();
"""


def table_exists(engine, table_name: str) -> bool:
    if engine is None:
        return False
    return inspect(engine).has_table(table_name)


def install_ledger_immutability(engine) -> None:
    """
    Postgres-only: block UPDATE/DELETE on balance_audit_entries and on
    finalized payment_details rows.
    Safe to run multiple times (idempotent).
    """
    if engine is None:
        return

    # Only apply to PostgreSQL
    dialect = getattr(engine, "dialect", None)
    if dialect is None or getattr(dialect, "name", "") != "postgresql":
        return

    with engine.begin() as conn:
        if table_exists(engine, "balance_audit_entries"):
            conn.execute(text(BALANCE_AUDIT_DDL))
        if table_exists(engine, "payment_details"):
            conn.execute(text(FINALIZED_PAYMENT_DDL))
