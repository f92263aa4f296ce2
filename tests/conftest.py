import warnings

# Ignore warnings from app.shared
warnings.filterwarnings("ignore", category=DeprecationWarning, module="app.shared.*")

# Import fixtures so they are available to all tests
from tests.fixtures.api_fixtures import *  # noqa: E402, F403
from tests.fixtures.live_fixtures import *  # noqa: E402, F403
from tests.fixtures.mongo_fixtures import *  # noqa: E402, F403
