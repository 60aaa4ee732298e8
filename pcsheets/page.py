"""
HTML character-sheet page for a single player character.

Dependencies: pip install jinja2

Notations are expanded while the sheet data is built, so the page template
only lays out finished HTML.
"""

import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from jinja2 import BaseLoader, Environment

from pcsheets.config import NotationConfig
from pcsheets.notation.utils import format_signed, is_number, resolve_book_title
from pcsheets.sheet import PCSheet

logger = logging.getLogger(__name__)


def signed(value: Any) -> str:
    return format_signed(value) if is_number(value) else str(value)


def repeat(text: str, count: Any) -> str:
    return str(text) * max(0, int(count)) if is_number(count) else ""


def split(text: Any, separator: str = ",") -> List[str]:
    if not isinstance(text, str):
        return []
    return [part.strip() for part in text.split(separator) if part.strip()]


def has_tag(item: Any, tag: str) -> bool:
    return isinstance(item, dict) and tag in (item.get("tags") or [])


def relative_root(current_page_path: Optional[Union[str, Path]]) -> str:
    """``characters/ada.html`` -> ``../``; used to reach shared assets."""
    if not current_page_path:
        return ""
    return "../" * len(Path(current_page_path).parent.parts)


class PCSheetPage:
    def __init__(
        self,
        template_path: str = None,
        system_data_dir: Optional[Union[str, Path]] = None,
        config: Optional[NotationConfig] = None,
    ):
        self.template_path = template_path
        self.system_data_dir = system_data_dir
        self.config = config
        self._template = None

    def _environment(self, loader) -> Environment:
        env = Environment(loader=loader)
        env.filters.update({
            "signed": signed,
            "book_name": resolve_book_title,
            "repeat": repeat,
            "split": split,
        })
        env.tests["has_tag"] = has_tag
        env.globals["has_tag"] = has_tag
        return env

    @property
    def template(self):
        if self._template is None:
            if self.template_path:
                from jinja2 import FileSystemLoader
                template_dir = Path(self.template_path).parent
                template_name = Path(self.template_path).name
                env = self._environment(FileSystemLoader(str(template_dir)))
                self._template = env.get_template(template_name)
            else:
                env = self._environment(BaseLoader())
                self._template = env.from_string(DEFAULT_TEMPLATE)
        return self._template

    def build_sheet(self, pc_json: Dict[str, Any]) -> Dict[str, Any]:
        sheet = PCSheet(pc_json, system_data_dir=self.system_data_dir, config=self.config)
        return sheet.get_data()

    def render_html(self, pc_json: Dict[str, Any], current_page_path: Optional[Union[str, Path]] = None) -> str:
        data = self.build_sheet(pc_json)
        logger.info("Rendering sheet page for %s", data.get("name") or "<unnamed>")
        return self.template.render(character=data, root_path=relative_root(current_page_path))

    def save_html(
        self,
        pc_json: Dict[str, Any],
        output_path: Union[str, Path],
        current_page_path: Optional[Union[str, Path]] = None,
    ) -> None:
        Path(output_path).write_text(self.render_html(pc_json, current_page_path), encoding="utf-8")


# Template stored in separate variable for readability
DEFAULT_TEMPLATE = '''<!DOCTYPE html>
<html>
<head>
<meta charset="UTF-8">
<title>{{ character.name or "Character" }}</title>
<link rel="stylesheet" href="{{ root_path }}css/pcsheet.css">
</head>
<body>
{% macro dots(list) -%}
<span class="dotline">{% for dot in list %}<span class="dot dot-{{ dot }}"></span>{% endfor %}</span>
{%- endmacro %}
{% macro advantage_dots(list) -%}
{% if list %}<span class="dotline">{% for dot in list %}<span class="dot {{ dot }}"></span>{% endfor %}</span>{% endif %}
{%- endmacro %}
{% macro source(item) -%}
{% if item.source and item.source.book %}<span class="source">{{ item.source.book|book_name }}{% if item.source.page %} p. {{ item.source.page }}{% endif %}</span>{% endif %}
{%- endmacro %}
<div class="sheet">

<div class="section header">
{% if character.imageUrl %}<img class="portrait" src="{{ character.imageUrl }}" alt="">{% endif %}
<h1>{{ character.name }}</h1>
<div class="header-grid">
<div class="header-cell"><span class="label">Player</span><span class="value">{{ character.player }}</span></div>
<div class="header-cell"><span class="label">Concept</span><span class="value">{{ character.concept }}</span></div>
<div class="header-cell"><span class="label">Origin</span><span class="value">{{ character.origin }}</span></div>
<div class="header-cell"><span class="label">Clade</span><span class="value">{{ character.clade }}</span></div>
<div class="header-cell"><span class="label">Forms</span><span class="value">{{ character.forms|join(", ") }}</span></div>
<div class="header-cell"><span class="label">Sex</span><span class="value">{{ character.sex|upper }}</span></div>
<div class="header-cell"><span class="label">DOB</span><span class="value">{{ character.dob }}</span></div>
<div class="header-cell"><span class="label">DDV</span><span class="value">{{ character.ddv }}</span></div>
</div>
<div class="overview">{{ character.overview }}</div>
</div>

{% for group, priorities in [("attributes", character.attributePriorities), ("skills", character.skillPriorities)] %}
<div class="section {{ group }}">
<div class="section-title">{{ group|capitalize }}</div>
{% for category in ["mental", "physical", "social"] %}
<div class="trait-column priority-{{ priorities[category] }}">
<div class="column-title">{{ category|capitalize }} <small>({{ priorities[category] }})</small></div>
{% for key, trait in character[group][category].items() %}
<div class="trait {{ trait.cssClasses|join(" ") }}">
<span class="trait-name{% if trait.tooltip %} has-tooltip{% endif %}"{% if trait.tooltipID %} style="anchor-name: --{{ trait.tooltipID }};"{% endif %}>{{ key }}</span>
{{ dots(trait.dotline.dots) }}
{% if trait.tooltip %}{{ trait.tooltip }}{% endif %}
{% for spec in trait.specs %}<div class="spec">{{ spec.text }}{% if spec.tagString %} {{ spec.tagString }}{% endif %}</div>{% endfor %}
</div>
{% endfor %}
</div>
{% endfor %}
</div>
{% endfor %}

<div class="section derived">
<div class="section-title">Traits</div>
{% for name in ["health", "willpower", "acclimation", "stability"] %}
<div class="trait"><span class="trait-name">{{ name|capitalize }}</span> {{ dots(character[name].dotline.dots) }}</div>
{% endfor %}
<div class="stat-row">
<span class="label">Size</span> <span class="value">{{ character.size }}</span>
<span class="label">Defense</span> <span class="value">{{ character.defense }}</span>
<span class="label">Initiative</span> <span class="value">{{ character.initiative|signed }}</span>
<span class="label">Speed</span> <span class="value">{{ character.speed }}</span>
<span class="label">Armor</span> <span class="value">{{ character.armor.general }}/{{ character.armor.ballistic }}</span>
</div>
</div>

{% if character.merits %}
<div class="section merits">
<div class="section-title">Merits</div>
{% for merit in character.merits %}
<div class="merit{% if merit.parentMeritKey %} secondary-merit{% endif %}{% if merit is has_tag("style") %} merit-style{% endif %}">
<div class="advantage-title">{{ merit.display }} {{ "●"|repeat(merit.value or merit.purchaseLevel) }} {{ source(merit) }}</div>
{% if merit.effect %}<div class="advantage-effect">{{ merit.effect }}</div>{% endif %}
{% if merit.drawback %}<div class="advantage-drawback"><strong>Drawback:</strong> {{ merit.drawback }}</div>{% endif %}
{% if merit.narrative %}<div class="advantage-narrative">{{ merit.narrative }}</div>{% endif %}
</div>
{% endfor %}
</div>
{% endif %}

{% if character.scars %}
<div class="section scars">
<div class="section-title">Scars</div>
{% for scar in character.scars %}
<div class="scar scar-{{ scar.type }}">
<div class="advantage-title">{{ scar.display }} {{ advantage_dots(scar.valueDots) }} {{ source(scar) }}</div>
{% if scar.infoLine %}
<div class="scar-info">
<span class="scar-type">{{ scar.infoLine.typeLabel }}</span>
{% for stat in scar.infoLine.stats %}<span class="scar-stat">{{ stat.label }} {{ stat.valueHtml }}</span>{% endfor %}
{% if scar.infoLine.activationHtml %}{{ scar.infoLine.activationHtml }}{% endif %}
</div>
{% endif %}
{% for badge in scar.keywordBadges or [] %}{{ badge.html }}{% endfor %}
{{ scar.effect }}
{% for badge in scar.deviationBadges or [] %}{{ badge.html }}{% endfor %}
{% if scar.narrative %}<div class="advantage-narrative">{{ scar.narrative }}</div>{% endif %}
{% for variation in (character.variationsByScar or {}).get(scar.key, []) %}
<div class="variation entangled{% if variation.parentVariationKey %} secondary-variation{% endif %}">
<div class="advantage-title">{{ variation.display }} {{ advantage_dots(variation.valueDots) }}</div>
{{ variation.effect }}
</div>
{% endfor %}
</div>
{% endfor %}
</div>
{% endif %}

{% set ungrouped = (character.variationsByScar or {}).get("__ungrouped__", []) %}
{% if ungrouped %}
<div class="section variations">
<div class="section-title">Variations</div>
{% for variation in ungrouped %}
<div class="variation variation-{{ variation.type }}{% if variation.parentVariationKey %} secondary-variation{% endif %}">
<div class="advantage-title">{{ variation.display }} {{ advantage_dots(variation.valueDots) }} {{ source(variation) }}</div>
{% for badge in variation.keywordBadges or [] %}{{ badge.html }}{% endfor %}
{{ variation.effect }}
{% for badge in variation.deviationBadges or [] %}{{ badge.html }}{% endfor %}
{% if variation.narrative %}<div class="advantage-narrative">{{ variation.narrative }}</div>{% endif %}
</div>
{% endfor %}
</div>
{% endif %}

{% if character.bio %}
<div class="section bio">
<div class="section-title">Biography</div>
{% for paragraph in character.bio|split("\\n") %}<p>{{ paragraph }}</p>{% endfor %}
</div>
{% endif %}

</div>
</body>
</html>'''


# Example usage
if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

    if len(sys.argv) < 2:
        print("Usage: python -m pcsheets.page <character.json> [output.html] [system-data-dir]")
        sys.exit(1)

    character_path = Path(sys.argv[1])
    output_path = Path(sys.argv[2]) if len(sys.argv) > 2 else character_path.with_suffix(".html")
    data_dir = sys.argv[3] if len(sys.argv) > 3 else None

    with open(character_path, "r", encoding="utf-8") as f:
        pc_json = json.load(f)

    PCSheetPage(system_data_dir=data_dir).save_html(pc_json, output_path)
    print(f"Generated: {output_path}")
