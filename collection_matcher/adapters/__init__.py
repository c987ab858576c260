from collection_matcher.adapters.json_collection import convert_item, load_collection, parse_collection
from collection_matcher.adapters.json_config import load_match_config, parse_match_config

__all__ = ["convert_item", "load_collection", "load_match_config", "parse_collection", "parse_match_config"]
