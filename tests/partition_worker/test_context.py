"""Tests for WorkerContext construction and the profile resolver interface."""

import pytest

from partition_worker.config import WorkerConfig
from partition_worker.context import WorkerContext
from partition_worker.envelope import EnvelopeTransformer
from partition_worker.profiles import (
    ProfileNotFoundError,
    ProfileResolver,
    StaticProfileResolver,
    UserProfile,
)
from partition_worker.writers import DeltaEntityWriter, InMemoryEntityWriter


@pytest.fixture
def profile():
    return UserProfile(user_id="u1", email="u1@example.com", refresh_token="r-secret")


class TestWorkerContext:

    def test_in_memory_sink_without_table_path(self):
        context = WorkerContext.build(WorkerConfig(bootstrap_servers="localhost:9092"))

        assert isinstance(context.sink, InMemoryEntityWriter)
        assert isinstance(context.envelope, EnvelopeTransformer)
        assert context.profile_resolver is None
        assert not context.shutting_down

    def test_delta_sink_with_table_path(self):
        config = WorkerConfig(
            bootstrap_servers="localhost:9092", entities_table_path="/tmp/entities"
        )

        context = WorkerContext.build(config)

        assert isinstance(context.sink, DeltaEntityWriter)
        assert context.sink.table_path == "/tmp/entities"

    def test_dev_mode_forces_in_memory_sink(self):
        config = WorkerConfig(
            bootstrap_servers="localhost:9092", entities_table_path="/tmp/entities"
        )

        context = WorkerContext.build(config, dev=True)

        assert isinstance(context.sink, InMemoryEntityWriter)

    def test_shutdown_event(self):
        context = WorkerContext.build(WorkerConfig(bootstrap_servers="localhost:9092"))

        context.shutdown_event.set()

        assert context.shutting_down

    def test_carries_profile_resolver(self, profile):
        resolver = StaticProfileResolver({"code-1": profile})

        context = WorkerContext.build(
            WorkerConfig(bootstrap_servers="localhost:9092"), profile_resolver=resolver
        )

        assert context.profile_resolver is resolver


class TestProfiles:

    def test_refresh_token_hidden_from_repr(self, profile):
        assert "r-secret" not in repr(profile)
        assert "r-secret" not in profile.model_dump_json()
        assert profile.refresh_token.get_secret_value() == "r-secret"

    def test_static_resolver_satisfies_protocol(self, profile):
        assert isinstance(StaticProfileResolver({}), ProfileResolver)

    @pytest.mark.asyncio
    async def test_resolve_profile(self, profile):
        resolver = StaticProfileResolver({"code-1": profile})

        assert await resolver.resolve_profile("code-1") == profile

    @pytest.mark.asyncio
    async def test_unknown_code(self):
        with pytest.raises(ProfileNotFoundError):
            await StaticProfileResolver({}).resolve_profile("nope")
