"""Tests for connection params, container handles and sandbox identities."""

from __future__ import annotations

import dataclasses
import random
import re

import pytest

from pgsandbox.models import ConnectionParams, ContainerHandle, SandboxIdentity


def test_derived_params_leave_original_untouched() -> None:
    base = ConnectionParams(host="db", port=5433, user="admin", password="pw", database="postgres")

    derived = base.with_credentials("app", "apppw").with_database("appdb")

    assert (derived.user, derived.password, derived.database) == ("app", "apppw", "appdb")
    assert (base.user, base.password, base.database) == ("admin", "pw", "postgres")
    assert derived.host == "db" and derived.port == 5433


def test_params_are_immutable() -> None:
    params = ConnectionParams(options={"application_name": "a"})

    with pytest.raises(dataclasses.FrozenInstanceError):
        params.port = 1  # type: ignore[misc]
    with pytest.raises(TypeError):
        params.options["application_name"] = "b"  # type: ignore[index]


def test_options_are_copied_and_keep_order() -> None:
    source = {"b": "2", "a": "1"}
    params = ConnectionParams(options=source)
    source["c"] = "3"

    assert list(params.options) == ["b", "a"]
    assert list(params.with_database("x").options) == ["b", "a"]


def test_for_sandbox_uses_identity() -> None:
    identity = SandboxIdentity(database="sandboxabc", role="sandboxabc", password="p" * 32)
    params = ConnectionParams(host="h", port=1, connect_timeout=9.0, options={"k": "v"})

    sandbox = params.for_sandbox(identity)

    assert sandbox == ConnectionParams(
        host="h",
        port=1,
        user="sandboxabc",
        password="p" * 32,
        database="sandboxabc",
        connect_timeout=9.0,
        options={"k": "v"},
    )


def test_connect_kwargs_omit_missing_password() -> None:
    kwargs = ConnectionParams(user="postgres").connect_kwargs()

    assert "password" not in kwargs
    assert "server_settings" not in kwargs
    assert kwargs["timeout"] == 5.0


def test_dsn_masks_password_unless_revealed() -> None:
    params = ConnectionParams(
        host="h", port=5, user="u", password="p@ss", database="d", options={"application_name": "ci"}, ssl="disable"
    )

    assert params.to_dsn() == "postgresql://u:***@h:5/d?application_name=ci&sslmode=disable"
    assert params.to_dsn(reveal_password=True) == "postgresql://u:p%40ss@h:5/d?application_name=ci&sslmode=disable"
    assert "p@ss" not in repr(params)


def test_container_handle_port_lookup() -> None:
    handle = ContainerHandle("f" * 64)

    running = handle.with_ports({5432: 49153})

    assert handle.host_port(5432) is None
    assert running.host_port(5432) == 49153
    assert running.short_id == "f" * 12


def test_identities_are_unique_and_lowercase_alphanumeric() -> None:
    identities = [SandboxIdentity.generate() for _ in range(1000)]

    names = {identity.database for identity in identities}
    assert len(names) == 1000
    for identity in identities:
        assert re.fullmatch(r"[a-z0-9]+", identity.database)
        assert re.fullmatch(r"[a-z0-9]{32}", identity.password)
        assert identity.role == identity.database
        assert len(identity.database) >= 20


def test_seeded_generation_is_reproducible() -> None:
    first = SandboxIdentity.generate(random.Random(1234))
    second = SandboxIdentity.generate(random.Random(1234))

    assert first == second


def test_identity_repr_hides_password() -> None:
    identity = SandboxIdentity.generate(random.Random(1))

    assert identity.password not in repr(identity)


@pytest.mark.parametrize(
    "kwargs",
    [
        {"name_length": 19},
        {"password_length": 31},
        {"prefix": "Bad_Prefix"},
    ],
)
def test_generate_rejects_weak_settings(kwargs: dict[str, object]) -> None:
    with pytest.raises(ValueError):
        SandboxIdentity.generate(**kwargs)  # type: ignore[arg-type]


def test_sslmode_option_is_rejected() -> None:
    with pytest.raises(ValueError, match="ssl="):
        ConnectionParams(options={"sslmode": "require"})
    with pytest.raises(ValueError):
        ConnectionParams(ssl="sometimes")


def test_ssl_reaches_asyncpg_and_survives_sandbox() -> None:
    identity = SandboxIdentity(database="sandboxabc", role="sandboxabc", password="p" * 32)
    params = ConnectionParams(host="db", ssl="require", options={"application_name": "ci"})

    sandbox = params.for_sandbox(identity)

    assert params.connect_kwargs()["ssl"] == "require"
    assert params.connect_kwargs()["server_settings"] == {"application_name": "ci"}
    assert sandbox.ssl == "require"
    assert sandbox.connect_kwargs()["ssl"] == "require"
    assert "ssl" not in ConnectionParams().connect_kwargs()


def test_ssl_bool_maps_to_sslmode_in_dsn() -> None:
    assert ConnectionParams(ssl=True).to_dsn().endswith("?sslmode=require")
    assert ConnectionParams(ssl=False).to_dsn().endswith("?sslmode=disable")


def test_params_and_handles_are_hashable() -> None:
    first = ConnectionParams(host="db", options={"application_name": "ci"}, ssl="require")
    second = ConnectionParams(host="db", options={"application_name": "ci"}, ssl="require")
    handle = ContainerHandle("abc", {5432: 49153})

    assert hash(first) == hash(second)
    assert len({first, second, first.with_database("other")}) == 2
    assert hash(handle) == hash(ContainerHandle("abc", {5432: 49153}))
    assert {handle: "running"}[handle.with_ports({5432: 49153})] == "running"
