"""
Template source fragments.
"""
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import List, Mapping, Union

from ..error.exceptions import TemplateNotFound

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SourceFragment:
    """One named unit of template markup.

    The name is the fragment's logical name in a registry; it does not have to
    match the entry name a registry is compiled for.
    """
    name: str
    source: str


def fragments_from_files(
    directory: Union[str, Path],
    *filenames: str,
    encoding: str = "utf-8"
) -> List[SourceFragment]:
    """
    Load fragments from files, each named after its file name.

    Args:
        directory: Directory containing the template files
        *filenames: File names relative to ``directory``, in parse order
        encoding: File encoding

    Returns:
        Fragments in the order given

    Raises:
        TemplateNotFound: If a file does not exist
    """
    root = Path(directory)
    fragments = []
    for filename in filenames:
        path = root / filename
        if not path.is_file():
            raise TemplateNotFound(filename)
        fragments.append(SourceFragment(name=path.name, source=path.read_text(encoding=encoding)))
        logger.debug(f"Loaded template fragment {path}")
    return fragments


def fragments_from_mapping(sources: Mapping[str, str]) -> List[SourceFragment]:
    """Build fragments from a name -> source mapping, keeping its order."""
    return [SourceFragment(name=name, source=source) for name, source in sources.items()]
