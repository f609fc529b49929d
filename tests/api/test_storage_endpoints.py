import pytest
from appwrite.exception import AppwriteException

from conftest import session_cookie


@pytest.mark.parametrize("mode", ["view", "download"])
def test_redirects_to_appwrite_url(client, cloud, mode):
    cloud.storage.get_file.return_value = {"$id": "file-1"}

    response = client.get(f"/storage/file-1/{mode}", headers=session_cookie(), follow_redirects=False)

    assert response.status_code == 307
    assert response.headers["location"] == (
        f"https://appwrite.test/v1/storage/buckets/files/files/file-1/{mode}?project=proj-test"
    )
    cloud.storage.get_file.assert_called_once_with(bucket_id="files", file_id="file-1")


def test_missing_file_is_404(client, cloud):
    cloud.storage.get_file.side_effect = AppwriteException("File not found", 404)

    response = client.get("/storage/file-1/view", headers=session_cookie(), follow_redirects=False)

    assert response.status_code == 404
    assert response.json() == {"detail": "File not found"}
    assert "location" not in response.headers


def test_requires_session(client, cloud):
    response = client.get("/storage/file-1/download", follow_redirects=False)

    assert response.status_code == 401
    cloud.storage.get_file.assert_not_called()
