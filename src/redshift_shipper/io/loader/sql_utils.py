COPY_SQL_TEMPLATE = (
    "copy {table} from '{s3_uri}' "
    "CREDENTIALS 'aws_access_key_id={aws_key_id};aws_secret_access_key={aws_sec_key}' "
    "delimiter '{delimiter}' REMOVEQUOTES GZIP;"
)


def quote_literal_body(value: str) -> str:
    """
    Escape text for use inside a single-quoted SQL literal.

    Examples:
        >>> quote_literal_body("s3://bucket/it's.gz")
        "s3://bucket/it''s.gz"
    """
    if not isinstance(value, str):
        raise ValueError("Literal value must be a string")
    return value.replace("'", "''")


def build_copy_sql(
    table: str,
    s3_uri: str,
    aws_key_id: str,
    aws_sec_key: str,
    delimiter: str,
) -> str:
    """
    Render the COPY statement that loads one gzip file into ``table``.

    The table name is inserted as configured (it may be schema-qualified);
    every literal is escaped.

    Raises:
        ValueError: If table or s3_uri is empty
    """
    if not table or not isinstance(table, str):
        raise ValueError("Table name is required")
    if not s3_uri:
        raise ValueError("S3 URI is required")

    return COPY_SQL_TEMPLATE.format(
        table=table,
        s3_uri=quote_literal_body(s3_uri),
        aws_key_id=quote_literal_body(aws_key_id),
        aws_sec_key=quote_literal_body(aws_sec_key),
        delimiter=quote_literal_body(delimiter),
    )
