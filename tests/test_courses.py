import pytest

from indigo_api.models import Course, CourseChapter

COURSE_ID = "00000000-0000-0000-0000-000000000001"
DRAFT_ID = "00000000-0000-0000-0000-000000000002"


@pytest.fixture
async def courses(db):
    async with db() as session:
        session.add(Course(id=COURSE_ID, slug="tie-dye-basics", title="扎染入门", status="published", is_free=True))
        session.add(Course(id=DRAFT_ID, title="蜡染进阶", status="draft"))
        session.add(CourseChapter(course_id=COURSE_ID, title="第二章", position=2))
        session.add(CourseChapter(course_id=COURSE_ID, title="第一章", position=1))
        await session.commit()


@pytest.mark.asyncio
async def test_only_published_courses_are_listed(client, courses):
    data = (await client.get("/api/courses")).json()["data"]
    assert data["total"] == 1
    assert [c["id"] for c in data["courses"]] == [COURSE_ID]

    resp = await client.get(f"/api/courses/{DRAFT_ID}")
    assert resp.status_code == 404


@pytest.mark.asyncio
@pytest.mark.parametrize("raw_id", [COURSE_ID, "1", "tie-dye-basics"])
async def test_course_lookup_by_any_id_form(client, courses, raw_id):
    resp = await client.get(f"/api/courses/{raw_id}")
    assert resp.status_code == 200
    course = resp.json()["data"]
    assert course["id"] == COURSE_ID
    assert [ch["title"] for ch in course["chapters"]] == ["第一章", "第二章"]


@pytest.mark.asyncio
async def test_comments_and_replies(client, courses, login):
    login("alice")
    resp = await client.post(f"/api/courses/{COURSE_ID}/comments", json={"content": "  很棒的课程  "})
    assert resp.status_code == 201
    parent = resp.json()["data"]
    assert parent["content"] == "很棒的课程"

    await client.post(f"/api/courses/{COURSE_ID}/comments", json={"content": "同意", "parent_id": parent["id"]})

    data = (await client.get(f"/api/courses/{COURSE_ID}/comments")).json()["data"]
    assert data["total"] == 1
    assert data["comments"][0]["reply_count"] == 1


@pytest.mark.asyncio
@pytest.mark.parametrize("content", [None, "   ", "蓝" * 501])
async def test_comment_content_is_validated(client, courses, login, content):
    login("alice")
    resp = await client.post(f"/api/courses/{COURSE_ID}/comments", json={"content": content})
    assert resp.status_code == 400


@pytest.mark.asyncio
async def test_only_author_can_delete_comment(client, courses, login):
    login("alice")
    comment = (await client.post(f"/api/courses/{COURSE_ID}/comments", json={"content": "hi"})).json()["data"]

    login("bob")
    resp = await client.delete(f"/api/courses/{COURSE_ID}/comments/{comment['id']}")
    assert resp.status_code == 403
    assert resp.json()["error"]["code"] == "FORBIDDEN"

    login("alice")
    resp = await client.delete(f"/api/courses/{COURSE_ID}/comments/{comment['id']}")
    assert resp.status_code == 200
    assert (await client.get(f"/api/courses/{COURSE_ID}/comments")).json()["data"]["total"] == 0


@pytest.mark.asyncio
async def test_enroll_and_progress(client, courses, login):
    login("alice")
    first = await client.post(f"/api/courses/{COURSE_ID}/enroll")
    assert first.status_code == 201
    again = await client.post(f"/api/courses/{COURSE_ID}/enroll")
    assert again.status_code == 200

    resp = await client.patch(f"/api/courses/{COURSE_ID}/enroll", json={"progress": 100})
    enrollment = resp.json()["data"]
    assert enrollment["status"] == "completed"
    assert enrollment["completed_at"] is not None

    resp = await client.patch(f"/api/courses/{COURSE_ID}/enroll", json={"progress": 40})
    assert resp.json()["data"]["status"] == "in_progress"
    assert resp.json()["data"]["completed_at"] is None

    course = (await client.get(f"/api/courses/{COURSE_ID}")).json()["data"]
    assert course["students_count"] == 1


@pytest.mark.asyncio
async def test_progress_requires_enrollment(client, courses, login):
    login("alice")
    resp = await client.patch(f"/api/courses/{COURSE_ID}/enroll", json={"progress": 10})
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_like_toggles(client, courses, login):
    login("alice")
    assert (await client.post(f"/api/courses/{COURSE_ID}/like")).json()["data"] == {"isLiked": True, "likesCount": 1}
    assert (await client.get(f"/api/courses/{COURSE_ID}/like")).json()["data"]["isLiked"] is True
    assert (await client.post(f"/api/courses/{COURSE_ID}/like")).json()["data"] == {"isLiked": False, "likesCount": 0}

    login(None)
    assert (await client.get(f"/api/courses/{COURSE_ID}/like")).json()["data"] == {"isLiked": False, "likesCount": 0}


# ============================================================
# Learning records
# ============================================================


@pytest.mark.asyncio
async def test_stats_for_anonymous_are_zero(client):
    data = (await client.get("/api/user/stats")).json()["data"]
    assert data["stats"] == {
        "orders": 0,
        "courses": 0,
        "favorites": 0,
        "completedCourses": 0,
        "learningDays": 0,
        "assignments": 0,
    }


@pytest.mark.asyncio
async def test_user_courses_and_stats(client, courses, login):
    login("alice")
    await client.post(f"/api/courses/{COURSE_ID}/enroll")
    await client.patch(f"/api/courses/{COURSE_ID}/enroll", json={"progress": 100})

    stats = (await client.get("/api/user/stats")).json()["data"]["stats"]
    assert stats["courses"] == 1
    assert stats["completedCourses"] == 1
    assert stats["learningDays"] == 1

    data = (await client.get("/api/user/courses")).json()["data"]
    assert data["courses"][0]["course"]["title"] == "扎染入门"
    assert data["stats"]["completed"] == 1


@pytest.mark.asyncio
async def test_profile_upsert(client, login):
    login("alice")
    assert (await client.get("/api/user/profile")).json()["data"]["username"] is None

    resp = await client.put("/api/user/profile", json={"username": "蓝草"})
    assert resp.json()["data"] == {
        "id": "alice",
        "username": "蓝草",
        "full_name": None,
        "avatar_url": None,
        "website": None,
    }
