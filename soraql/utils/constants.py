"""Constants used throughout the soraql package."""

# Output formats supported by the renderers
SUPPORTED_OUTPUT_FORMATS = ['table', 'csv', 'json']
DEFAULT_OUTPUT_FORMAT = 'table'

# Formats accepted by .export (written through pandas)
SUPPORTED_EXPORT_FORMATS = ['csv', 'json', 'jsonl', 'excel', 'parquet']

# Query status values reported by the analysis API
STATUS_COMPLETED = 'COMPLETED'
STATUS_RUNNING = 'RUNNING'
STATUS_EXPORTING = 'EXPORTING'
STATUS_FAILED = 'FAILED'

# Poll loop defaults (seconds / iterations)
INITIAL_DELAY = 5.0
POLL_INTERVAL = 10.0
RETRY_INTERVAL = 5.0
MAX_POLLS = 30
SPINNER_INTERVAL = 0.1

# Share of numeric values above which a column is right-aligned
NUMERIC_COLUMN_THRESHOLD = 0.8

# Unix timestamps outside [2000-01-01, 2100-01-01) are rejected
MIN_TIMESTAMP = 946684800
MAX_TIMESTAMP = 4102444800

# API endpoints
JP_ENDPOINT = 'jp.api.soracom.io'
GLOBAL_ENDPOINT = 'g.api.soracom.io'
AUTH_PATH = '/v1/auth'
QUERIES_PATH = '/v1/analysis/queries'
SCHEMAS_PATH = '/v1/analysis/schemas'
SQL_ASSISTANT_PATH = '/v1/analysis/sql_assistant'
EXPORT_FORMAT = 'jsonl'

API_KEY_HEADER = 'x-soracom-api-key'
TOKEN_HEADER = 'x-soracom-token'
SQL_HELPER_HEADERS = {'x-soracom-dynamicroutes': 'add-sql-helper'}
ASSISTANT_TIME_RANGE_HOURS = 2

EXIT_COMMANDS = {'exit', 'quit', '\\q', '.exit', '.quit'}

SQL_KEYWORDS = [
    'SELECT', 'FROM', 'WHERE', 'ORDER BY', 'GROUP BY', 'HAVING', 'LIMIT', 'COUNT', 'SUM', 'AVG',
    'MIN', 'MAX', 'DISTINCT', 'AS', 'AND', 'OR', 'NOT', 'DESC', 'ASC', 'JOIN', 'LEFT JOIN',
    'INNER JOIN', 'ON', 'IN', 'IS NULL', 'IS NOT NULL', 'BETWEEN', 'LIKE', 'CASE', 'WHEN',
    'THEN', 'ELSE', 'END', 'WITH', 'UNION ALL'
]

# Tables offered by tab completion before the schema has been fetched
KNOWN_TABLES = [
    'SIM_SNAPSHOTS', 'SIM_SESSION_EVENTS', 'CELL_TOWERS', 'COUNTRIES', 'HARVEST_DATA',
    'HARVEST_FILES', 'MCC_MNC', 'MCC', 'SIM_STATS', 'NETWORKS', 'BILLING_HISTORY'
]
