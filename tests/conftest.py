import pytest

from synthetic_lungs import RecordingPlugin, make_dataset

from lungctx import ContextSession, build_lung_registry


@pytest.fixture
def registry():
    return build_lung_registry()


@pytest.fixture
def lung_dataset():
    return make_dataset()


@pytest.fixture
def unlabelled_dataset():
    return make_dataset(uid="unlabelled", with_labels=False)


@pytest.fixture
def session():
    return ContextSession()


@pytest.fixture
def results(session, lung_dataset):
    return session.open(lung_dataset)


@pytest.fixture
def make_plugin(session):
    """Factory registering RecordingPlugins with the session."""

    def _make(name, context_set, **kwargs):
        return session.register_plugin(RecordingPlugin(name, context_set, **kwargs))

    return _make
