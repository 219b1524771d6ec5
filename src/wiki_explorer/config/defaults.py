"""Default configuration for wiki-explorer."""

# Wiki API
WIKI_API_URL = "https://en.wikipedia.org/w/api.php"
WIKI_ARTICLE_BASE_URL = "https://en.wikipedia.org/wiki/"
DEFAULT_FETCH_TIMEOUT = 30.0  # seconds
USER_AGENT = "wiki-explorer/0.3 (link graph explorer)"

# Namespaces whose links are never turned into nodes
EXCLUDED_NAMESPACES = frozenset(
    {
        "User",
        "Talk",
        "Template",
        "Wikipedia",
        "File",
        "Image",
        "MediaWiki",
        "Help",
        "Category",
        "Portal",
        "Book",
        "Draft",
        "TimedText",
        "Module",
        "Special",
        "Media",
    }
)

# Link limit (sub-nodes per fetch)
DEFAULT_LINK_LIMIT = 150
UNLIMITED_LINK_THRESHOLD = 2000  # knob values at or above this mean "no cap"

# Graph store
ROOT_ORIGIN = "ROOT"
CHILD_JITTER = 50.0  # children seeded within ±25 of their parent
ROOT_SCATTER = 200.0  # unrelated roots seeded within ±100 of the view center

# Forces, keyed by node group
LINK_DISTANCE_MAIN_MAIN = 350.0
LINK_DISTANCE_DEFAULT = 120.0
CHARGE_STRENGTH = {"main": -1500.0, "sub": -250.0}
COLLIDE_RADIUS = {"main": 50.0, "sub": 18.0}
CENTER_STRENGTH = 0.01

# Simulation (d3-force defaults)
ALPHA_MIN = 0.001
ALPHA_DECAY = 1 - ALPHA_MIN ** (1 / 300)
VELOCITY_DECAY = 0.4
DRAG_ALPHA_TARGET = 0.3
INITIAL_RADIUS = 10.0

# View
SCALE_EXTENT = (0.1, 4.0)
INITIAL_SCALE = 0.5
FOCUS_MIN_SCALE = 0.6
RESET_PADDING = 100.0
RESET_FILL = 0.9
TRANSITION_MS = 1000.0
HIGHLIGHT_MS = 200.0
DEFAULT_VIEWPORT = (1200, 800)

# Labels (semantic zoom)
LABEL_FONT_SIZE = {"main": 12.0, "sub": 10.0}
SUB_LABEL_MIN_SCALE = 1.2

# Server
DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 8080
DEFAULT_FPS = 30
