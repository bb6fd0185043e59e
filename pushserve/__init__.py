__version__ = "0.1.0"

from pushserve.app import PushServer
from pushserve.conf import Settings

__all__ = ["PushServer", "Settings", "__version__"]
