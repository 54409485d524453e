from datetime import timedelta
from uuid import uuid4

from fastapi import status

from src.catalog.api.v1.routes_guidelines import content_disposition
from src.catalog.domain.errors import StorageFailure
from src.catalog.domain.models.user import Identity, UserRole
from src.catalog.infra.storage.objects import ObjectStore
from src.catalog.security import identity_provider

API = "/api/v1/guidelines"
PDF_BYTES = b"%PDF-1.4\n1 0 obj<<>>endobj\ntrailer<<>>\n%%EOF\n"
SEPSIS = {
    "title": "Sepsis Protocol",
    "trustName": "Royal London Hospital",
    "medicalSpeciality": "emergency",
    "content": "Screen with NEWS2 and start the sepsis six within one hour.",
}
SEPSIS_FORM = {k: v for k, v in SEPSIS.items() if k != "content"}


async def _create(client, headers, **overrides):
    response = await client.post(API, json={**SEPSIS, **overrides}, headers=headers)
    assert response.status_code == status.HTTP_201_CREATED, response.text
    return response.json()["data"]


async def test_create_text_guideline(client, admin_headers):
    response = await client.post(API, json=SEPSIS, headers=admin_headers)

    assert response.status_code == status.HTTP_201_CREATED
    body = response.json()
    assert body["success"] is True
    assert body["message"] == "Guideline created successfully"
    data = body["data"]
    assert data["fileType"] == "text"
    assert data["url"] is None
    assert data["content"] == SEPSIS["content"]
    assert data["isActive"] is True
    assert data["createdBy"] == "admin-1"
    assert data["formattedSpeciality"] == "Emergency"
    assert "source" not in data


async def test_create_pdf_guideline_via_multipart(client, admin_headers, object_store):
    response = await client.post(
        API,
        data={**SEPSIS_FORM, "tags": "sepsis, emergency"},
        files={"file": ("sepsis.pdf", PDF_BYTES, "application/pdf")},
        headers=admin_headers,
    )

    assert response.status_code == status.HTTP_201_CREATED, response.text
    data = response.json()["data"]
    assert data["fileType"] == "pdf"
    assert data["url"]
    assert data["content"] is None
    assert data["tags"] == ["sepsis", "emergency"]
    assert len(object_store) == 1

    download = await client.get(f"{API}/{data['id']}/file")
    assert download.status_code == status.HTTP_200_OK
    assert download.headers["content-type"] == "application/pdf"
    assert download.content == PDF_BYTES


async def test_file_download_with_non_ascii_name(client, admin_headers):
    response = await client.post(
        API,
        data=SEPSIS_FORM,
        files={"file": ("指南.pdf", PDF_BYTES, "application/pdf")},
        headers=admin_headers,
    )
    assert response.status_code == status.HTTP_201_CREATED, response.text

    download = await client.get(f"{API}/{response.json()['data']['id']}/file")
    assert download.status_code == status.HTTP_200_OK
    assert download.content == PDF_BYTES
    disposition = download.headers["content-disposition"]
    assert disposition.startswith('inline; filename="')
    assert disposition.endswith("filename*=utf-8''%E6%8C%87%E5%8D%97.pdf")


def test_content_disposition_quoting():
    assert content_disposition("sepsis.pdf") == 'inline; filename="sepsis.pdf"'
    assert content_disposition('say "hi".pdf') == (
        "inline; filename=\"say _hi_.pdf\"; filename*=utf-8''say%20%22hi%22.pdf"
    )


async def test_multipart_repeated_tags(client, admin_headers):
    response = await client.post(
        API,
        data={**SEPSIS, "tags": ["sepsis", "emergency"]},
        headers=admin_headers,
    )
    assert response.status_code == status.HTTP_201_CREATED, response.text
    assert response.json()["data"]["tags"] == ["sepsis", "emergency"]


async def test_rejects_non_pdf_upload(client, admin_headers):
    response = await client.post(
        API,
        data=SEPSIS_FORM,
        files={"file": ("notes.txt", b"hello", "text/plain")},
        headers=admin_headers,
    )
    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert response.json() == {"success": False, "error": "Only PDF files are allowed"}


async def test_missing_fields_are_a_validation_error(client, admin_headers):
    response = await client.post(API, json={"title": "Only a title"}, headers=admin_headers)
    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert response.json()["success"] is False


async def test_malformed_json_is_a_validation_error(client, admin_headers):
    response = await client.post(
        API,
        content=b"{not json",
        headers={**admin_headers, "Content-Type": "application/json"},
    )
    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert response.json()["error"] == "Malformed JSON body"


async def test_mutations_require_admin(client, admin_headers, clinician_headers):
    created = await _create(client, admin_headers)
    target = f"{API}/{created['id']}"

    anonymous = await client.post(API, json=SEPSIS)
    assert anonymous.status_code == status.HTTP_401_UNAUTHORIZED

    bad_token = await client.put(target, json={"title": "x"}, headers={"Authorization": "Bearer nonsense"})
    assert bad_token.status_code == status.HTTP_401_UNAUTHORIZED
    assert bad_token.json() == {"success": False, "error": "Invalid token"}

    for response in (
        await client.post(API, json=SEPSIS, headers=clinician_headers),
        await client.put(target, json={"title": "x"}, headers=clinician_headers),
        await client.delete(target, headers=clinician_headers),
    ):
        assert response.status_code == status.HTTP_403_FORBIDDEN
        assert response.json() == {"success": False, "error": "Admin access required"}

    unchanged = await client.get(target)
    assert unchanged.json()["data"] == created


async def test_expired_token_on_mutation(client):
    token = identity_provider.issue(
        Identity(id="admin-1", role=UserRole.ADMIN),
        expires_in=timedelta(seconds=-5),
    )
    response = await client.post(API, json=SEPSIS, headers={"Authorization": f"Bearer {token}"})
    assert response.status_code == status.HTTP_401_UNAUTHORIZED
    assert response.json()["error"] == "Token has expired"


async def test_reads_accept_invalid_credentials_as_anonymous(client, admin_headers):
    await _create(client, admin_headers)
    response = await client.get(API, headers={"Authorization": "Bearer nonsense"})
    assert response.status_code == status.HTTP_200_OK
    assert response.json()["data"]["pagination"]["total"] == 1


async def test_list_shape_and_pagination(client, admin_headers):
    for i in range(3):
        await _create(client, admin_headers, title=f"Guideline {i}")

    response = await client.get(API, params={"page": 2, "limit": 2})
    assert response.status_code == status.HTTP_200_OK
    body = response.json()
    assert body["success"] is True
    assert len(body["data"]["data"]) == 1
    assert body["data"]["pagination"] == {
        "page": 2,
        "limit": 2,
        "total": 3,
        "totalPages": 2,
        "hasNext": False,
        "hasPrev": True,
    }


async def test_list_clamps_out_of_range_paging(client):
    response = await client.get(API, params={"page": "0", "limit": "1000"})
    assert response.status_code == status.HTTP_200_OK
    assert response.json()["data"]["pagination"]["page"] == 1
    assert response.json()["data"]["pagination"]["limit"] == 100

    response = await client.get(API, params={"page": "abc"})
    assert response.json()["data"]["pagination"]["page"] == 1


async def test_list_filters(client, admin_headers):
    emergency = await _create(client, admin_headers, tags=["emergency"])
    stroke = await _create(client, admin_headers, title="Stroke", tags=["stroke"], trustName="Manchester Royal Infirmary")
    retired = await _create(client, admin_headers, title="Retired", isActive=False)

    def ids(response):
        return {g["id"] for g in response.json()["data"]["data"]}

    assert ids(await client.get(API, params={"tags": "emergency"})) == {emergency["id"]}
    assert ids(await client.get(API, params=[("tags", "emergency"), ("tags", "stroke")])) == {
        emergency["id"],
        stroke["id"],
    }
    assert ids(await client.get(API, params={"tags": "emergency,stroke"})) == {emergency["id"], stroke["id"]}
    assert ids(await client.get(API, params={"isActive": "false"})) == {retired["id"]}
    assert ids(await client.get(API, params={"trustName": "Manchester Royal Infirmary"})) == {stroke["id"]}
    assert len(ids(await client.get(API, params={"trustName": "all"}))) == 2


async def test_list_rejects_unknown_speciality(client):
    response = await client.get(API, params={"medicalSpeciality": "astrology"})
    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert response.json()["success"] is False


async def test_search_endpoint(client, admin_headers):
    in_title = await _create(
        client,
        admin_headers,
        title="Stroke Thrombolysis Protocol",
        description="Acute stroke pathway",
        content="Door to needle within 60 minutes for stroke thrombolysis.",
    )
    in_tags = await _create(
        client,
        admin_headers,
        title="Imaging audit",
        content="CT reporting times.",
        tags=["stroke", "imaging", "audit", "radiology"],
    )

    response = await client.get(f"{API}/search", params={"q": " stroke "})
    assert response.status_code == status.HTTP_200_OK
    data = response.json()["data"]
    assert data["query"] == "stroke"
    assert [g["id"] for g in data["data"]] == [in_title["id"], in_tags["id"]]
    assert data["pagination"]["total"] == 2


async def test_search_requires_query(client):
    response = await client.get(f"{API}/search")
    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert response.json() == {"success": False, "error": "Search query is required"}


async def test_get_is_idempotent_and_unknown_ids_are_not_found(client, admin_headers):
    created = await _create(client, admin_headers)

    first = await client.get(f"{API}/{created['id']}")
    second = await client.get(f"{API}/{created['id']}")
    assert first.json() == second.json() == {"success": True, "data": created}

    for missing in (str(uuid4()), "not-a-uuid"):
        response = await client.get(f"{API}/{missing}")
        assert response.status_code == status.HTTP_404_NOT_FOUND
        assert response.json() == {"success": False, "error": "Guideline not found"}


async def test_update_guideline(client, admin_headers):
    created = await _create(client, admin_headers, tags=["sepsis"])

    response = await client.put(
        f"{API}/{created['id']}",
        json={"title": "Sepsis Protocol v2", "trustName": "", "tags": "sepsis, adults"},
        headers=admin_headers,
    )
    assert response.status_code == status.HTTP_200_OK
    body = response.json()
    assert body["message"] == "Guideline updated successfully"
    data = body["data"]
    assert data["title"] == "Sepsis Protocol v2"
    assert data["trustName"] == created["trustName"]
    assert data["tags"] == ["sepsis", "adults"]
    assert data["updatedBy"] == "admin-1"
    assert data["updatedAt"] > created["updatedAt"]


async def test_update_with_pdf_replaces_text(client, admin_headers):
    created = await _create(client, admin_headers)

    response = await client.put(
        f"{API}/{created['id']}",
        data={"description": "Now a PDF"},
        files={"file": ("sepsis-v2.pdf", PDF_BYTES, "application/pdf")},
        headers=admin_headers,
    )
    assert response.status_code == status.HTTP_200_OK, response.text
    data = response.json()["data"]
    assert data["fileType"] == "pdf"
    assert data["content"] is None
    assert data["description"] == "Now a PDF"


async def test_delete_twice(client, admin_headers):
    created = await _create(client, admin_headers)
    target = f"{API}/{created['id']}"

    first = await client.delete(target, headers=admin_headers)
    assert first.status_code == status.HTTP_200_OK
    assert first.json() == {"success": True, "message": "Guideline deleted successfully"}

    second = await client.delete(target, headers=admin_headers)
    assert second.status_code == status.HTTP_404_NOT_FOUND


async def test_storage_failure_leaves_no_record(client, admin_headers, service):
    class DownStore(ObjectStore):
        def put(self, data, key, *, content_type="application/pdf"):
            raise StorageFailure()

        def get(self, key):
            raise StorageFailure("Failed to read file")

    service.content.object_store = DownStore()

    response = await client.post(
        API,
        data=SEPSIS_FORM,
        files={"file": ("sepsis.pdf", PDF_BYTES, "application/pdf")},
        headers=admin_headers,
    )
    assert response.status_code == status.HTTP_503_SERVICE_UNAVAILABLE
    assert response.json() == {"success": False, "error": "Failed to upload file", "retryable": True}

    listing = await client.get(API)
    assert listing.json()["data"]["pagination"]["total"] == 0


async def test_file_endpoint_for_text_guideline_is_not_found(client, admin_headers):
    created = await _create(client, admin_headers)
    response = await client.get(f"{API}/{created['id']}/file")
    assert response.status_code == status.HTTP_404_NOT_FOUND


async def test_stats_endpoint(client, admin_headers):
    await _create(client, admin_headers)
    await _create(client, admin_headers, trustName="St George's Hospital", medicalSpeciality="cardiology")

    response = await client.get(f"{API}/stats")
    assert response.status_code == status.HTTP_200_OK
    data = response.json()["data"]
    assert data["total"] == 2
    assert data["trustCount"] == 2
    assert data["bySpeciality"]["cardiology"] == 1


async def test_auth_me(client, admin_headers, clinician_headers):
    anonymous = (await client.get("/api/v1/auth/me")).json()["data"]
    assert anonymous["access"] == "anonymous"
    assert anonymous["user"] is None

    clinician = (await client.get("/api/v1/auth/me", headers=clinician_headers)).json()["data"]
    assert clinician["access"] == "authenticated"
    assert clinician["isAdmin"] is False
    assert clinician["user"]["trustName"] == "St George's Hospital"

    admin = (await client.get("/api/v1/auth/me", headers=admin_headers)).json()["data"]
    assert admin["access"] == "admin"
    assert admin["isAdmin"] is True
