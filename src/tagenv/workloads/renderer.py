# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

from pathlib import Path
from typing import List, Optional, Tuple

from jinja2 import Environment, FileSystemLoader, StrictUndefined

from ..config.models import WorkloadSettings

TEMPLATES_DIR = Path(__file__).resolve().parent / "templates"

# storage before application, application before exposure
WORKLOAD_ORDER: Tuple[str, ...] = ("storage", "application", "ingress")


class TemplateRenderer:
    def __init__(self, templates_dir: Optional[Path] = None):
        self.env = Environment(
            loader=FileSystemLoader(str(templates_dir or TEMPLATES_DIR)),
            autoescape=False,
            undefined=StrictUndefined,
            keep_trailing_newline=True,
        )

    def render(self, template_name: str, context: dict) -> str:
        tmpl = self.env.get_template(template_name)
        return tmpl.render(**context)


def render_workloads(
    settings: WorkloadSettings,
    environment_id: str,
    renderer: Optional[TemplateRenderer] = None,
) -> List[Tuple[str, str]]:
    """
    Render the workload manifests in apply order as (name, document) pairs.
    Only non-secret settings are in the template context; credentials are
    referenced through secretKeyRef.
    """
    renderer = renderer or TemplateRenderer()
    context = settings.model_dump()
    context["environment_id"] = environment_id
    return [(name, renderer.render(f"{name}.yaml.j2", context)) for name in WORKLOAD_ORDER]
