from tally_client.api_client import TallyClient, ApiError
from tally_client.export import export_to_csv, export_to_json

__all__ = [
    "TallyClient",
    "ApiError",
    "export_to_csv",
    "export_to_json",
]
