"""
Definição do pipeline fixo de agentes
"""

from orchestrator.models import AgentConfig
from utils.prompt_loader import PromptLoader

AGENT_DEFINITIONS: list[dict] = [
    {
        "id": "ana-clara",
        "display_name": "Ana Clara",
        "role": "Product Manager",
        "description": "PM sênior especializada em PRDs e especificações técnicas",
        "output_directory": "/01-pm/",
        "dependencies": [],
        "fallback": ["OpenAI", "Claude", "Gemini"],
    },
    {
        "id": "marina",
        "display_name": "Marina Silva",
        "role": "Lead UX Designer",
        "description": "Designer UX especializada em design systems e acessibilidade",
        "output_directory": "/02-design/",
        "dependencies": ["ana-clara"],
        "fallback": ["Claude", "OpenAI", "Gemini"],
    },
    {
        "id": "carlos",
        "display_name": "Carlos Mendes",
        "role": "Senior Frontend Engineer",
        "description": "Desenvolvedor frontend especializado em React e performance",
        "output_directory": "/03-frontend/",
        "dependencies": ["marina"],
        "fallback": ["OpenAI", "Gemini", "Claude"],
    },
    {
        "id": "lucas",
        "display_name": "Lucas Santos",
        "role": "DevOps Engineer",
        "description": "DevOps especializado em containerização e CI/CD",
        "output_directory": "/04-devops/",
        "dependencies": ["carlos"],
        "fallback": ["Gemini", "OpenAI", "Claude"],
    },
    {
        "id": "fernanda",
        "display_name": "Fernanda Costa",
        "role": "QA Automation Lead",
        "description": "QA especializada em testes automatizados e performance",
        "output_directory": "/05-qa/",
        "dependencies": ["lucas"],
        "fallback": ["Gemini", "Claude", "OpenAI"],
    },
    {
        "id": "beatriz",
        "display_name": "Beatriz Lima",
        "role": "Legal & Compliance",
        "description": "Advogada especializada em tecnologia e compliance",
        "output_directory": "/06-legal/",
        "dependencies": ["fernanda"],
        "fallback": ["Claude", "OpenAI", "Gemini"],
    },
    {
        "id": "camila",
        "display_name": "Camila Rodrigues",
        "role": "Release Manager",
        "description": "Release manager especializada em packaging e documentação",
        "output_directory": "/07-release/",
        "dependencies": ["beatriz"],
        "fallback": ["Claude", "Gemini", "OpenAI"],
    },
]


def build_pipeline(config: dict | None = None, prompt_loader: PromptLoader | None = None) -> list[AgentConfig]:
    """
    Monta as configurações dos agentes na ordem do pipeline.

    A ordem de fallback de cada agente pode ser sobrescrita em orchestrator.agents.<id>.fallback.

    Raises:
        ValueError: Se faltar template de prompt ou uma dependência não aparecer antes do agente
    """
    config = config or {}
    prompt_loader = prompt_loader or PromptLoader()
    overrides = config.get("orchestrator", {}).get("agents") or {}

    pipeline = []
    seen: set[str] = set()
    for definition in AGENT_DEFINITIONS:
        agent_id = definition["id"]
        template = prompt_loader.load_template(agent_id)
        if not template:
            raise ValueError(f"Template de prompt não encontrado para o agente {agent_id}")

        missing = [dep for dep in definition["dependencies"] if dep not in seen]
        if missing:
            raise ValueError(f"Dependências de {agent_id} precisam vir antes no pipeline: {', '.join(missing)}")

        fallback = (overrides.get(agent_id) or {}).get("fallback") or definition["fallback"]

        pipeline.append(
            AgentConfig(
                id=agent_id,
                display_name=definition["display_name"],
                role=definition["role"],
                description=definition["description"],
                prompt_template=template,
                fallback_provider_order=list(fallback),
                dependency_ids=list(definition["dependencies"]),
                output_directory=definition["output_directory"],
            )
        )
        seen.add(agent_id)

    return pipeline
