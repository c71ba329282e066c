from __future__ import annotations

import pytest

from conftest import TEST_SHOP, FakeS3Client
from size_chart_app.errors import DuplicateNameError, HasAssignmentsError, NotFoundError, ValidationError
from size_chart_app.media_storage import MediaStorage
from size_chart_app.models import ProductAssignment, TemplateKindEnum
from size_chart_app.repositories import TemplatesRepository
from size_chart_app.schemas import parse_chart_data

TABLE_CHART = {"unit": "in", "columns": [{"key": "chest", "label": "Chest"}], "sizeData": [{"size": "M", "chest": "40"}]}
MEASUREMENT_CHART = {
    "isMeasurementTemplate": True,
    "measurementFields": [
        {
            "name": "Chest",
            "enabled": True,
            "guideImageUrl": "https://size-chart-test.s3.us-east-1.amazonaws.com/images/2024/05/chest.png",
        },
        {
            "name": "Waist",
            "enabled": True,
            "guideImage": "https://size-chart-test.s3.us-east-1.amazonaws.com/images/guideimages/waist.png",
        },
    ],
    "measurementFile": "https://size-chart-test.s3.us-east-1.amazonaws.com/images/2024/05/chart.png",
}


def _create(repo: TemplatesRepository, name: str, chart: dict | None = None, shop: str = TEST_SHOP):
    return repo.create(shop=shop, name=name, gender="male", chart=parse_chart_data(chart or TABLE_CHART))


def test_create_trims_name_and_sets_kind(db_session):
    repo = TemplatesRepository(db_session)
    template = _create(repo, "  Men's Shirt  ")

    assert template.name == "Men's Shirt"
    assert template.active is True
    assert template.kind == TemplateKindEnum.table
    assert template.chart_data["sizeData"][0]["size"] == "M"


def test_create_rejects_duplicate_name_for_same_shop(db_session):
    repo = TemplatesRepository(db_session)
    _create(repo, "Men's Shirt")

    with pytest.raises(DuplicateNameError) as excinfo:
        _create(repo, "Men's Shirt ")
    assert 'A template with the name "Men\'s Shirt" already exists' in str(excinfo.value)


def test_duplicate_check_spans_shop_forms(db_session):
    repo = TemplatesRepository(db_session)
    _create(repo, "Dresses", shop="acme")

    with pytest.raises(DuplicateNameError):
        _create(repo, "Dresses", shop="acme.myshopify.com")


def test_same_name_allowed_for_other_shop(db_session):
    repo = TemplatesRepository(db_session)
    _create(repo, "Dresses")
    other = _create(repo, "Dresses", shop="other.myshopify.com")
    assert other.shop == "other.myshopify.com"


def test_create_requires_name_and_gender(db_session):
    repo = TemplatesRepository(db_session)
    with pytest.raises(ValidationError, match="Chart name is required."):
        repo.create(shop=TEST_SHOP, name="  ", gender="male", chart=parse_chart_data(TABLE_CHART))
    with pytest.raises(ValidationError, match="Gender is required."):
        repo.create(shop=TEST_SHOP, name="Shirt", gender=None, chart=parse_chart_data(TABLE_CHART))


def test_measurement_template_requires_enabled_field(db_session):
    repo = TemplatesRepository(db_session)
    chart = {"isMeasurementTemplate": True, "measurementFields": [{"name": "Chest", "enabled": False}]}
    with pytest.raises(ValidationError, match="At least one measurement field must be enabled"):
        _create(repo, "Tailored", chart)


def test_update_allows_keeping_own_name_but_rejects_others(db_session):
    repo = TemplatesRepository(db_session)
    first = _create(repo, "Shirts")
    _create(repo, "Trousers")

    updated = repo.update(template_id=first.id, shop=TEST_SHOP, name="Shirts", description="Cotton shirts")
    assert updated.description == "Cotton shirts"

    with pytest.raises(DuplicateNameError):
        repo.update(template_id=first.id, shop=TEST_SHOP, name="Trousers")


def test_update_missing_template_raises_not_found(db_session):
    with pytest.raises(NotFoundError):
        TemplatesRepository(db_session).update(template_id="missing", shop=TEST_SHOP, name="X")


def test_update_blocks_kind_change_when_assigned(db_session):
    repo = TemplatesRepository(db_session)
    template = _create(repo, "Shirts")
    db_session.add(ProductAssignment(shop=TEST_SHOP, template_id=template.id, product_id="1", product_title="Tee"))
    db_session.commit()

    with pytest.raises(ValidationError):
        repo.update(template_id=template.id, shop=TEST_SHOP, chart=parse_chart_data(MEASUREMENT_CHART))


def test_toggle_active_flips_flag_without_touching_assignments(db_session):
    repo = TemplatesRepository(db_session)
    template = _create(repo, "Shirts")
    db_session.add(ProductAssignment(shop=TEST_SHOP, template_id=template.id, product_id="1", product_title="Tee"))
    db_session.commit()

    toggled = repo.toggle_active(template_id=template.id, shop=TEST_SHOP)
    assert toggled.active is False
    assert len(toggled.assignments) == 1

    assert repo.toggle_active(template_id=template.id, shop=TEST_SHOP, active=True).active is True


def test_delete_with_assignments_is_blocked(db_session):
    repo = TemplatesRepository(db_session)
    template = _create(repo, "Shirts")
    for index, title in enumerate(["Tee", "Polo", "Henley", "Oxford"]):
        db_session.add(
            ProductAssignment(shop=TEST_SHOP, template_id=template.id, product_id=str(index), product_title=title)
        )
    db_session.commit()

    with pytest.raises(HasAssignmentsError) as excinfo:
        repo.delete(template_id=template.id, shop=TEST_SHOP)

    payload = excinfo.value.to_payload()
    assert payload["hasAssignments"] is True
    assert payload["assignmentCount"] == 4
    assert "assigned to 4 products" in payload["error"]
    assert "and 1 more" in payload["error"]
    assert len(payload["productTitles"]) == 3
    assert set(payload["productTitles"]) <= {"Tee", "Polo", "Henley", "Oxford"}
    assert repo.get(template_id=template.id, shop=TEST_SHOP) is not None


def test_delete_removes_template_and_images(db_session):
    repo = TemplatesRepository(db_session)
    template = _create(repo, "Tailored", MEASUREMENT_CHART)
    s3 = FakeS3Client()

    repo.delete(template_id=template.id, shop=TEST_SHOP, media_storage=MediaStorage(client=s3))

    assert s3.deleted_keys == ["images/2024/05/chart.png", "images/2024/05/chest.png"]
    with pytest.raises(NotFoundError):
        repo.get_or_404(template_id=template.id, shop=TEST_SHOP)


def test_delete_survives_image_cleanup_failure(db_session):
    class ExplodingStorage(MediaStorage):
        def delete_image(self, url_or_key):
            raise RuntimeError("s3 down")

    repo = TemplatesRepository(db_session)
    template = _create(repo, "Tailored", MEASUREMENT_CHART)

    repo.delete(template_id=template.id, shop=TEST_SHOP, media_storage=ExplodingStorage(client=FakeS3Client()))
    assert repo.get(template_id=template.id, shop=TEST_SHOP) is None


def test_list_filters_searches_and_partitions(db_session):
    repo = TemplatesRepository(db_session)
    _create(repo, "Shirts")
    _create(repo, "Tailored", MEASUREMENT_CHART)
    inactive = _create(repo, "Old shirts")
    repo.toggle_active(template_id=inactive.id, shop=TEST_SHOP)

    everything = repo.list(shop="acme")
    assert [t.name for t in everything] == ["Old shirts", "Tailored", "Shirts"]

    table, measurement = repo.partition(everything)
    assert {t.name for t in table} == {"Shirts", "Old shirts"}
    assert [t.name for t in measurement] == ["Tailored"]

    assert [t.name for t in repo.list(shop=TEST_SHOP, search="SHIRT", active=True)] == ["Shirts"]
