from appwrite.exception import AppwriteException

from core.cloud.appwrite import AppwriteGateway, call
from core.results.outcome import Outcome


async def delete_stored_file(cloud: AppwriteGateway, file_id: str) -> Outcome[None]:
    """Removes a file from the bucket. A file already gone counts as success."""
    try:
        await call(
            cloud.as_admin().storage.delete_file,
            bucket_id=cloud.settings.appwrite_bucket_id,
            file_id=file_id,
        )
    except AppwriteException as e:
        if e.code == 404:
            return Outcome.success()
        return Outcome.failure(f"{e.code}: {e.message}")
    return Outcome.success()
