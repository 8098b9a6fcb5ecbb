from braik.models.models import *  # noqa: F401,F403
from braik.models.models import __all__  # noqa: F401
