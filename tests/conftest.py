import pytest

from onboarding.models import GenerationProfile, SiteTemplate

from tests.fakes import make_profile, make_template


@pytest.fixture()
def template() -> SiteTemplate:
    return make_template()


@pytest.fixture()
def profile() -> GenerationProfile:
    return make_profile()
