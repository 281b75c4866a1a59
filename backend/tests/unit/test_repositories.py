"""
Repository 单元测试
验证 PostRepository、UserDirectory 和 ProfileStore 的读写与降级行为
"""

import asyncio
import json
import time

from pinkbook.models import DEFAULT_BIO, DEFAULT_NICKNAME, Post, User, UserProfile
from pinkbook.repositories import UserDirectory
from pinkbook.repositories.post_repository import POSTS_KEY
from pinkbook.repositories.profile_repository import PROFILE_KEY
from pinkbook.repositories.user_repository import (
    MSG_BAD_CREDENTIALS,
    MSG_DUPLICATE,
    MSG_MISSING_FIELDS,
    MSG_PASSWORD_MISMATCH,
    MSG_REGISTERED,
    USERS_KEY,
)
from pinkbook.storage import KeyValueStore


class TestPostRepository:
    """测试 PostRepository"""

    def test_list_all_empty(self, post_repository):
        """测试没有数据时返回空列表"""
        assert asyncio.run(post_repository.list_all()) == []

    def test_add_prepends(self, post_repository):
        """测试新帖子插入到头部（最新在前）"""
        p1 = Post(id=1, title="first", summary="a")
        p2 = Post(id=2, title="second", summary="b")

        async def scenario():
            await post_repository.add(p1)
            await post_repository.add(p2)
            return await post_repository.list_all()

        assert asyncio.run(scenario()) == [p2, p1]

    def test_malformed_json_returns_empty(self, post_repository, store):
        """测试 posts 被写入非法 JSON 时返回空列表而不是抛异常"""
        async def scenario():
            await store.set_item(POSTS_KEY, "{this is not json")
            return await post_repository.list_all()

        assert asyncio.run(scenario()) == []

    def test_wrong_shape_returns_empty(self, post_repository, store):
        """测试 posts 结构不符（不是数组）时返回空列表"""
        async def scenario():
            await store.set_item(POSTS_KEY, '{"id": 1}')
            return await post_repository.list_all()

        assert asyncio.run(scenario()) == []

    def test_save_all_format(self, post_repository, store):
        """测试写入格式与原应用一致：紧凑 JSON，无图片时省略 images"""
        posts = [
            Post(id=2, title="午后", summary="晒太阳", images=["/img/image_2_1.jpg"]),
            Post(id=1, title="t", summary="s"),
        ]

        async def scenario():
            await post_repository.save_all(posts)
            return await store.get_item(POSTS_KEY)

        raw = asyncio.run(scenario())

        assert raw == (
            '[{"id":2,"title":"午后","summary":"晒太阳","images":["/img/image_2_1.jpg"]},'
            '{"id":1,"title":"t","summary":"s"}]'
        )

    def test_reads_records_written_by_original_app(self, post_repository, store):
        """测试读取已有数据（images 可缺省）"""
        raw = json.dumps([
            {"id": 1700000000001, "title": "b", "summary": "", "images": []},
            {"id": 1700000000000, "title": "a", "summary": "x"},
        ])

        async def scenario():
            await store.set_item(POSTS_KEY, raw)
            return await post_repository.list_all()

        posts = asyncio.run(scenario())

        assert [p.id for p in posts] == [1700000000001, 1700000000000]
        assert posts[0].images == []
        assert posts[1].images is None

    def test_concurrent_add_keeps_both(self, post_repository):
        """测试同一进程内并发新增不会互相覆盖"""
        async def scenario():
            await asyncio.gather(*(
                post_repository.add(Post(id=i, title=f"p{i}")) for i in range(5)
            ))
            return await post_repository.list_all()

        posts = asyncio.run(scenario())

        assert sorted(p.id for p in posts) == [0, 1, 2, 3, 4]

    def test_add_across_event_loops(self, post_repository):
        """测试同一个 repository 在多次 asyncio.run 中并发新增都能成功"""
        async def burst(start):
            return await asyncio.gather(*(
                post_repository.add(Post(id=start + i, title=f"p{start + i}")) for i in range(3)
            ))

        first = asyncio.run(burst(0))
        second = asyncio.run(burst(10))
        posts = asyncio.run(post_repository.list_all())

        assert all(first) and all(second)
        assert sorted(p.id for p in posts) == [0, 1, 2, 10, 11, 12]

    def test_add_assigns_increasing_ids(self, post_repository, monkeypatch):
        """测试 assign_id 时在锁内分配 id，同一毫秒的并发新增也不会重复"""
        monkeypatch.setattr("pinkbook.repositories.post_repository.time.time", lambda: 1700000000.0)
        posts = [Post(id=0, title=str(i)) for i in range(3)]

        async def scenario():
            await asyncio.gather(*(post_repository.add(p, assign_id=True) for p in posts))
            return await post_repository.list_all()

        stored = asyncio.run(scenario())

        assert sorted(p.id for p in posts) == [1700000000000, 1700000000001, 1700000000002]
        assert [p.id for p in stored] == sorted((p.id for p in posts), reverse=True)

    def test_get_by_id(self, post_repository):
        """测试根据 ID 获取帖子"""
        async def scenario():
            await post_repository.add(Post(id=10, title="detail"))
            return await post_repository.get_by_id(10), await post_repository.get_by_id(11)

        found, missing = asyncio.run(scenario())

        assert found.title == "detail"
        assert missing is None


class TestUserDirectory:
    """测试 UserDirectory"""

    def test_registration_uniqueness(self, user_directory):
        """测试邮箱与手机号分别检查唯一性"""
        async def scenario():
            await user_directory.register(User(email="e1", phone="p1", password="pw"))
            same_email = await user_directory.register(User(email="e1", phone="p2", password="pw"))
            same_phone = await user_directory.register(User(email="e2", phone="p1", password="pw"))
            fresh = await user_directory.register(User(email="e3", phone="p3", password="pw"))
            return same_email, same_phone, fresh

        same_email, same_phone, fresh = asyncio.run(scenario())

        assert not same_email.accepted and same_email.reason == MSG_DUPLICATE
        assert not same_phone.accepted and same_phone.reason == MSG_DUPLICATE
        assert fresh.accepted

    def test_authentication(self, user_directory):
        """测试邮箱或手机号 + 密码登录"""
        async def scenario():
            await user_directory.register(User(email="a@x.com", phone="1", password="pw"))
            return (
                await user_directory.authenticate("a@x.com", "pw"),
                await user_directory.authenticate("1", "pw"),
                await user_directory.authenticate("a@x.com", "wrong"),
            )

        by_email, by_phone, wrong = asyncio.run(scenario())

        assert by_email.accepted and by_email.user.email == "a@x.com"
        assert by_phone.accepted
        assert not wrong.accepted
        assert wrong.reason == MSG_BAD_CREDENTIALS
        assert wrong.user is None

    def test_authenticate_without_users(self, user_directory):
        """测试没有任何用户时登录失败"""
        result = asyncio.run(user_directory.authenticate("a@x.com", "pw"))

        assert not result.accepted

    def test_register_missing_fields(self, user_directory):
        """测试信息不全时拒绝注册"""
        result = asyncio.run(user_directory.register(User(email="", phone="1", password="pw")))

        assert not result.accepted
        assert result.reason == MSG_MISSING_FIELDS

    def test_register_password_mismatch(self, user_directory):
        """测试两次密码不一致时拒绝注册"""
        result = asyncio.run(user_directory.register(
            User(email="a@x.com", phone="1", password="pw"),
            confirm_password="pw2"
        ))

        assert not result.accepted
        assert result.reason == MSG_PASSWORD_MISMATCH

    def test_register_persists_plain_records(self, user_directory, store):
        """测试 users 以原格式写入"""
        async def scenario():
            await user_directory.register(User(email="a@x.com", phone="1", password="pw"))
            return await store.get_item(USERS_KEY)

        raw = asyncio.run(scenario())

        assert raw == '[{"email":"a@x.com","phone":"1","password":"pw"}]'

    def test_malformed_users_treated_as_empty(self, user_directory, store):
        """测试 users 损坏时按空列表处理，注册仍然可用"""
        async def scenario():
            await store.set_item(USERS_KEY, "oops")
            result = await user_directory.register(User(email="a@x.com", phone="1", password="pw"))
            return result, await user_directory.list_all()

        result, users = asyncio.run(scenario())

        assert result.accepted
        assert len(users) == 1

    def test_concurrent_duplicate_registration(self, user_directory):
        """测试并发注册同一邮箱只有一个成功"""
        async def scenario():
            return await asyncio.gather(*(
                user_directory.register(User(email="a@x.com", phone=str(i), password="pw"))
                for i in range(3)
            ))

        results = asyncio.run(scenario())

        assert sum(r.accepted for r in results) == 1

    def test_slow_write_reports_committed_state(self, test_db_engine):
        """测试写入超过超时时间时，注册结果与实际存储一致，重试才会判为重复"""
        slow_store = KeyValueStore(test_db_engine, timeout=0.05)
        original_set = slow_store._set

        def slow_set(key, value):
            time.sleep(0.2)
            original_set(key, value)

        slow_store._set = slow_set
        directory = UserDirectory(slow_store)
        candidate = User(email="a@x.com", phone="1", password="pw")

        async def scenario():
            first = await directory.register(candidate)
            stored = await directory.list_all()
            retry = await directory.register(candidate)
            return first, stored, retry

        first, stored, retry = asyncio.run(scenario())

        assert first.accepted and first.reason == MSG_REGISTERED
        assert stored == [candidate]
        assert not retry.accepted and retry.reason == MSG_DUPLICATE

    def test_register_across_event_loops(self, user_directory):
        """测试同一个 UserDirectory 在多次 asyncio.run 中注册都能成功"""
        first = asyncio.run(user_directory.register(User(email="a@x.com", phone="1", password="pw")))
        second = asyncio.run(user_directory.register(User(email="b@x.com", phone="2", password="pw")))

        assert first.accepted
        assert second.accepted


class TestProfileStore:
    """测试 ProfileStore"""

    def test_default_profile(self, profile_store):
        """测试首次读取返回默认资料"""
        profile = asyncio.run(profile_store.get())

        assert profile.nickname == DEFAULT_NICKNAME
        assert profile.bio == DEFAULT_BIO
        assert profile.avatar is None

    def test_save_and_get(self, profile_store, store):
        """测试保存后读取，没有头像时不写 avatar 字段"""
        async def scenario():
            saved = await profile_store.save(UserProfile(nickname="小红", bio="hello"))
            return saved, await profile_store.get(), await store.get_item(PROFILE_KEY)

        saved, profile, raw = asyncio.run(scenario())

        assert saved is True
        assert profile.nickname == "小红"
        assert raw == '{"nickname":"小红","bio":"hello"}'

    def test_malformed_profile_returns_default(self, profile_store, store):
        """测试资料损坏时返回默认资料"""
        async def scenario():
            await store.set_item(PROFILE_KEY, "[1, 2")
            return await profile_store.get()

        assert asyncio.run(scenario()).nickname == DEFAULT_NICKNAME

    def test_stale_avatar_upgraded_on_read(self, profile_store, image_repository, sample_image):
        """测试保存了临时头像引用时，读取会通过映射表升级为永久路径"""
        async def scenario():
            permanent = await image_repository.persist(str(sample_image))
            await profile_store.save(UserProfile(avatar=str(sample_image), nickname="n", bio="b"))
            return permanent, await profile_store.get()

        permanent, profile = asyncio.run(scenario())

        assert profile.avatar == permanent

    def test_list_owned_posts_is_all_posts(self, profile_store, post_repository):
        """测试“我的帖子”等同于全部帖子"""
        async def scenario():
            await post_repository.add(Post(id=1, title="a"))
            await post_repository.add(Post(id=2, title="b"))
            return await profile_store.list_owned_posts(), await post_repository.list_all()

        owned, everything = asyncio.run(scenario())

        assert owned == everything
