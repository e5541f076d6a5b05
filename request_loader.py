"""
Request file loader.

Loads YAML files that describe one extraction request, optionally with a
`settings:` block overriding engine timeouts and bounds. Keys may be
camelCase (as on the wire) or snake_case.
"""

from pathlib import Path
from typing import List, Tuple

import yaml

from models import ExtractionRequest, parse_extraction_request
from scrape_errors import ValidationError
from scraper_config import ScrapeSettings

HIGH_LIMIT = 10000
HIGH_PAGES = 1000
HIGH_DEEP_SEARCH_LIMIT = 200


def load_request(file_path: str) -> Tuple[ExtractionRequest, ScrapeSettings]:
    """
    Load an extraction request from a YAML file.

    Args:
        file_path: Path to YAML request file

    Returns:
        (request, settings)

    Raises:
        FileNotFoundError: If file doesn't exist
        ValidationError: If the file or the request in it is invalid
    """
    path = Path(file_path)

    if not path.exists():
        raise FileNotFoundError(f"Request file not found: {file_path}")

    try:
        with open(path, 'r', encoding='utf-8') as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ValidationError(f"Invalid YAML in {file_path}: {e}") from e

    if not isinstance(data, dict):
        raise ValidationError("Request file must contain a YAML dictionary")

    data = dict(data)
    settings = ScrapeSettings.from_dict(data.pop('settings', None))
    request = parse_extraction_request(data)
    return request, settings.with_timeout(request.timeout_ms)


def validate_request(request: ExtractionRequest) -> List[str]:
    """
    Check a request and return a list of warnings (not errors).

    Args:
        request: Request to check

    Returns:
        List of warning messages (empty if no warnings)
    """
    warnings = []

    if request.max_items and request.max_items > HIGH_LIMIT:
        warnings.append(f"limit is very high: {request.max_items}")

    if request.max_pages and request.max_pages > HIGH_PAGES:
        warnings.append(f"pages is very high: {request.max_pages}")

    if request.mode == 'list' and not (request.max_items or request.min_items or request.max_pages):
        warnings.append("No limit, min or pages set - will paginate until the list ends or time runs out")

    if request.deep_search and request.max_items and request.max_items > HIGH_DEEP_SEARCH_LIMIT:
        warnings.append(f"deepSearch visits one detail page per item ({request.max_items} requested)")

    if request.pagination_strategy == 'none' and request.max_pages and request.max_pages > 1:
        warnings.append("paginationStrategy is 'none' - only the first page will be read")

    return warnings
