"""Tests for the template library manager."""

import json

import pytest

from core.models import MockupTemplate, PrintArea
from core.template_manager import LIBRARY_FILE, TemplateManager
from utils.exceptions import TemplateNotFoundError

from conftest import write_template


@pytest.fixture
def manager(templates_dir):
    write_template(templates_dir, "poster-front")
    write_template(templates_dir, "tshirt-black-front", product_type="tshirt", color="black")
    write_template(templates_dir, "tshirt-white-back", product_type="tshirt", color="white", angle="back")
    return TemplateManager(templates_dir)


class TestLoading:

    def test_scan_builds_and_persists_index(self, manager, templates_dir):
        library = manager.load_library()
        assert {t.id for t in library.templates} == {
            "poster-front", "tshirt-black-front", "tshirt-white-back",
        }
        data = json.loads((templates_dir / LIBRARY_FILE).read_text())
        assert len(data["templates"]) == 3

    def test_paths_are_qualified_by_folder(self, manager):
        tpl = manager.require_template("poster-front")
        assert tpl.base_path == "poster-front/base.png"
        assert manager.resolve(tpl.base_path).is_file()

    def test_folder_without_base_is_skipped(self, templates_dir):
        folder = write_template(templates_dir, "broken")
        (folder / "base.png").unlink()
        manager = TemplateManager(templates_dir)
        assert manager.get_template("broken") is None

    def test_folder_with_missing_displacement_is_skipped(self, templates_dir):
        write_template(templates_dir, "no-texture", declare=("displacement.png",))
        manager = TemplateManager(templates_dir)
        assert manager.get_template("no-texture") is None

    def test_bad_metadata_is_skipped(self, templates_dir):
        folder = templates_dir / "junk"
        folder.mkdir()
        (folder / "metadata.json").write_text("{not json")
        write_template(templates_dir, "poster-front")
        manager = TemplateManager(templates_dir)
        assert [t.id for t in manager.load_library().templates] == ["poster-front"]

    def test_corrupt_index_is_rebuilt(self, manager, templates_dir):
        (templates_dir / LIBRARY_FILE).write_text("garbage")
        library = manager.reload_library()
        assert len(library.templates) == 3
        json.loads((templates_dir / LIBRARY_FILE).read_text())

    def test_library_is_cached_until_reload(self, manager):
        first = manager.load_library()
        assert manager.load_library() is first
        assert manager.reload_library() is not first

    def test_clear_cache_rereads_index(self, manager, templates_dir):
        first = manager.load_library()
        data = json.loads((templates_dir / LIBRARY_FILE).read_text())
        data["templates"] = data["templates"][:1]
        (templates_dir / LIBRARY_FILE).write_text(json.dumps(data))
        assert manager.load_library() is first
        manager.clear_cache()
        assert len(manager.load_library().templates) == 1

    def test_oversized_print_area_is_kept_with_warning(self, templates_dir, caplog):
        write_template(templates_dir, "bleed", print_area={"x": 0.6, "y": 0.2, "width": 0.6, "height": 0.5})
        with caplog.at_level("WARNING"):
            tpl = TemplateManager(templates_dir).require_template("bleed")
        assert "print area leaves the base image" in caplog.text
        assert tpl.print_area.to_pixels(1000, 1000) == (600, 200, 400, 500)

    def test_index_wins_over_folders(self, manager, templates_dir):
        manager.load_library()
        write_template(templates_dir, "late-arrival")
        assert manager.reload_library().templates[-1].id != "late-arrival"
        assert manager.get_template("late-arrival") is None

    def test_missing_directory_gives_empty_library(self, tmp_dir):
        manager = TemplateManager(tmp_dir / "nowhere")
        assert manager.load_library().templates == []


class TestQueries:

    def test_require_unknown_raises(self, manager):
        with pytest.raises(TemplateNotFoundError):
            manager.require_template("nope")

    def test_by_product(self, manager):
        assert len(manager.get_templates_by_product("tshirt")) == 2

    def test_find_is_conjunctive(self, manager):
        found = manager.find_templates(product_type="tshirt", color="black")
        assert [t.id for t in found] == ["tshirt-black-front"]
        assert len(manager.find_templates()) == 3
        assert manager.find_templates(angle="side") == []

    def test_stats(self, manager):
        stats = manager.get_stats()
        assert stats["total_templates"] == 3
        assert stats["by_product_type"] == {"poster": 1, "tshirt": 2}
        assert stats["by_angle"] == {"front": 2, "back": 1}
        assert stats["by_category"]["apparel"] == 2


class TestEdits:

    def _template(self, template_id="mug-white-front"):
        return MockupTemplate(
            id=template_id,
            name="Mug",
            product_type="mug",
            angle="front",
            base_path=f"{template_id}/base.png",
            print_area=PrintArea(0.1, 0.1, 0.8, 0.8),
        )

    def test_add_persists(self, manager, templates_dir):
        manager.add_template(self._template())
        assert manager.get_template("mug-white-front") is not None
        assert TemplateManager(templates_dir).get_template("mug-white-front") is not None

    def test_add_replaces_same_id(self, manager):
        manager.add_template(self._template())
        manager.add_template(self._template())
        ids = [t.id for t in manager.load_library().templates]
        assert ids.count("mug-white-front") == 1

    def test_remove(self, manager, templates_dir):
        assert manager.remove_template("poster-front")
        assert not manager.remove_template("poster-front")
        assert TemplateManager(templates_dir).get_template("poster-front") is None
