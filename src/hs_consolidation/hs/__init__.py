from .catalog import HSCatalog
from .hierarchy import HSCodeHierarchyService
