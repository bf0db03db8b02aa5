from sqlalchemy import BigInteger, Integer, Numeric

# Use BigInteger by default, with a SQLite-safe Integer variant for autoincrement PKs.
ID_TYPE = BigInteger().with_variant(Integer, "sqlite")

# Monetary amounts in the site currency, two decimal places.
MONEY = Numeric(12, 2, asdecimal=True)
