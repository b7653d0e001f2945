from ...config import SHOP_STATE
from ...constants import APP_NAME


def seed(conn):
    # a single shop_settings row must exist; the state drives the inter-state GST check
    row = conn.execute("SELECT COUNT(*) AS n FROM shop_settings").fetchone()
    if row and row["n"] == 0:
        conn.execute(
            """
            INSERT INTO shop_settings(shop_id, shop_name, state, gstin, address, phone)
            VALUES (1, ?, ?, NULL, NULL, NULL)
            """,
            (APP_NAME, SHOP_STATE),
        )
        if conn.in_transaction:
            conn.commit()
