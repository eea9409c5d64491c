"""
Span attribute keys and metric labels shared by the query hook.
"""

INSTRUMENTATION_NAME = "pgotel"

DB_SYSTEM = "postgresql"

# Span attributes
ATTR_DB_SYSTEM = "db.system"
ATTR_DB_STATEMENT = "db.statement"
ATTR_DB_CONNECTION_STRING = "db.connection_string"
ATTR_DB_USER = "db.user"
ATTR_DB_NAME = "db.name"
ATTR_DB_ROWS_AFFECTED = "db.rows_affected"
ATTR_FRAME_FUNC = "frame.func"
ATTR_FRAME_FILE = "frame.file"
ATTR_FRAME_LINE = "frame.line"

# Metric labels
LABEL_INSTANCE = "instance"
LABEL_METHOD = "method"
LABEL_TABLE = "table"
LABEL_STATUS = "status"

LATENCY_LABELS = (LABEL_METHOD, LABEL_INSTANCE, LABEL_TABLE, LABEL_STATUS)

STATUS_OK_LABEL = (LABEL_STATUS, "OK")
STATUS_ERROR_LABEL = (LABEL_STATUS, "Error")

# Statement text kept on spans
STATEMENT_LIMIT = 5000
# Operation names derived from statement text
OPERATION_NAME_LIMIT = 20
