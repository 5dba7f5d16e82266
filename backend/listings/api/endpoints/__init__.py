"""
API endpoints package
"""

from . import communities
from . import health
from . import properties
from . import revalidate
from . import search
