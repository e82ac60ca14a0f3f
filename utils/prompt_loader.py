import logging
import re
from pathlib import Path

from config.constants import LOGGER_NAME

logger = logging.getLogger(LOGGER_NAME)

_TEMPLATES_DIR = Path(__file__).parent.parent / "config" / "prompt_templates"


class PromptLoader:
    def __init__(self, templates_dir: Path | None = None, template_file: str = "pipeline.md"):
        self.templates_dir = Path(templates_dir) if templates_dir else _TEMPLATES_DIR
        self.template_file = template_file
        self._templates_cache: dict[Path, str] = {}

    def load_template(self, section_name: str) -> str | None:
        template_path = self.templates_dir / self.template_file

        if template_path in self._templates_cache:
            content = self._templates_cache[template_path]
        else:
            try:
                content = template_path.read_text(encoding="utf-8")
            except OSError as e:
                logger.error(f"Erro ao carregar template {template_path}: {str(e)}")
                return None
            self._templates_cache[template_path] = content

        section = self._extract_section(content, section_name)
        if not section:
            logger.warning(f"Seção '{section_name}' não encontrada em {template_path}")
            return None
        return section

    def _extract_section(self, content: str, section_name: str) -> str:
        section_lines = []
        in_section = False

        for line in content.split("\n"):
            stripped = line.strip()
            if stripped.startswith("#"):
                if in_section:
                    break
                in_section = stripped.lstrip("#").strip() == section_name
                continue
            if in_section:
                section_lines.append(line)

        return "\n".join(section_lines).strip()

    @staticmethod
    def render(template: str, replacements: dict[str, str]) -> str:
        """
        Substitui todas as ocorrências de {chave} pelos valores informados.

        A substituição é feita em uma única passada: o texto inserido não é reprocessado.
        """
        if not replacements:
            return template
        pattern = re.compile("|".join(re.escape(f"{{{key}}}") for key in replacements))
        return pattern.sub(lambda match: str(replacements[match.group(0)[1:-1]]), template)
