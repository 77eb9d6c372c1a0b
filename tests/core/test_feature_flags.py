from __future__ import annotations

import os

from voltwars.core import feature_flags


def test_env_and_override_stack() -> None:
    env_var = feature_flags.ENV_VAR
    original = os.environ.get(env_var)
    try:
        if env_var in os.environ:
            del os.environ[env_var]

        assert feature_flags.is_enabled(feature_flags.COMMENTARY_REMOTE) is False

        feature_flags.set_env_flags([" Commentary.Remote "])
        assert os.environ[env_var] == "commentary.remote"
        assert feature_flags.is_enabled(feature_flags.COMMENTARY_REMOTE) is True

        with feature_flags.override(disable={feature_flags.COMMENTARY_REMOTE}):
            assert feature_flags.is_enabled(feature_flags.COMMENTARY_REMOTE) is False
            with feature_flags.override(enable={feature_flags.REVEAL_VOLTAGE}):
                assert feature_flags.is_enabled(feature_flags.REVEAL_VOLTAGE) is True
                assert feature_flags.is_enabled(feature_flags.COMMENTARY_REMOTE) is False
                assert feature_flags.enabled_flags() == {feature_flags.REVEAL_VOLTAGE}

        assert feature_flags.is_enabled(feature_flags.COMMENTARY_REMOTE) is True
        assert feature_flags.enabled_flags() == {feature_flags.COMMENTARY_REMOTE}

    finally:
        if original is None:
            os.environ.pop(env_var, None)
        else:
            os.environ[env_var] = original
