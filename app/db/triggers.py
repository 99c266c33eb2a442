TOKEN_TRANSACTIONS_APPEND_ONLY_FUNCTION = """
CREATE OR REPLACE FUNCTION fn_token_transactions_append_only()
RETURNS trigger
LANGUAGE plpgsql
AS $$
BEGIN
    RAISE EXCEPTION 'token_transactions is append-only';
END;
$$;
"""

TOKEN_TRANSACTIONS_APPEND_ONLY_TRIGGER = """
CREATE TRIGGER trg_token_transactions_append_only
BEFORE UPDATE OR DELETE ON token_transactions
FOR EACH ROW
EXECUTE FUNCTION fn_token_transactions_append_only();
"""

DROP_TOKEN_TRANSACTIONS_APPEND_ONLY = (
    "DROP TRIGGER IF EXISTS trg_token_transactions_append_only ON token_transactions;",
    "DROP FUNCTION IF EXISTS fn_token_transactions_append_only();",
)
