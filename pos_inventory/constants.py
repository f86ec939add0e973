# pos_inventory/constants.py

# ---- storage ----
DATA_DIR = "data"
DB_FILE_NAME = "pos.db"
DB_PATH_ENV = "POS_DB_PATH"
LOG_LEVEL_ENV = "POS_LOG_LEVEL"

TABLE_SCHEMA_VERSION = "schema_version"
SCHEMA_VERSION = "1.1.0"

# ---- precision ----
QTY_PLACES = 3
MONEY_PLACES = 2
QTY_EPSILON = 1e-9
PAYMENT_EPSILON = 1e-9
# anything below this is treated as settled when listing dues
DUE_EPSILON = 1e-4

# ---- product types ----
TYPE_GLASS = "Glass"
TYPE_THAI_ALUMINUM = "Thai Aluminum"
TYPE_SS_PIPE = "SS Pipe"
TYPE_OTHERS = "Others"

DEFAULT_PIPE_LENGTH_FT = 20.0
SQIN_PER_SQFT = 144.0

# ---- invoice status ----
STATUS_PAID = "PAID"
STATUS_PARTIAL = "PARTIAL"
STATUS_UNPAID = "UNPAID"

# ---- document numbers (PREFIX-YYYYMMDD-NNNN) ----
PREFIX_INVOICE = "INV"
PREFIX_RETURN = "RET"
PREFIX_RECEIPT = "REC"
DOC_SEQ_WIDTH = 4

WALK_IN_CUSTOMER = "Walk-in"
