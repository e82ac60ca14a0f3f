"""
FallbackHandler - Respostas determinísticas usadas quando nenhum provedor de LLM está disponível
"""

import logging

from config.constants import LOGGER_NAME

logger = logging.getLogger(LOGGER_NAME)

# Ordem importa: a primeira família cujo termo aparece no papel vence
ROLE_FAMILIES: list[tuple[str, tuple[str, ...]]] = [
    ("devops", ("devops", "infra", "cloud", "sre")),
    ("frontend-dev", ("frontend", "front-end", "react")),
    ("backend-dev", ("backend", "back-end", "nodejs", "api-dev")),
    ("product-manager", ("product-manager", "product manager", "produto")),
    ("designer", ("design", "ux")),
    ("qa-engineer", ("qa", "quality", "test")),
    ("legal", ("legal", "compliance", "advog")),
    ("release-manager", ("release",)),
    ("copywriter", ("copywriter", "writer", "redator")),
    ("system-analyst", ("analyst", "analista")),
    ("developer", ("developer", "desenvolvedor", "engineer", "dev")),
]


class FallbackHandler:
    """Handler centralizado de templates de fallback por família de papel"""

    def __init__(self):
        self.fallback_templates = self._init_fallback_templates()

    def _init_fallback_templates(self) -> dict[str, str]:
        """Define templates de fallback para cada família de papel"""
        return {
            "product-manager": (
                "# Documento de Requisitos do Produto (PRD)\n\n"
                "## Visão Geral\n"
                "Solução proposta para atender às necessidades descritas pelo usuário.\n\n"
                "## Escopo do MVP\n"
                "1. Cadastro e autenticação de usuários\n"
                "2. Funcionalidade principal do produto\n"
                "3. Painel de acompanhamento\n\n"
                "## User Stories\n"
                "- Como usuário, eu quero acessar a funcionalidade principal para resolver meu problema.\n\n"
                "## Critérios de Aceitação\n"
                "- Dado que estou autenticado, quando acesso o painel, então vejo meus dados.\n\n"
                "## Métricas de Sucesso\n"
                "- Usuários ativos diários\n"
                "- Taxa de retenção em 30 dias\n"
            ),
            "designer": (
                "# Design System\n\n"
                "## Tokens\n"
                "- Cor primária: hsl(220 90% 56%)\n"
                "- Cor de fundo: hsl(0 0% 100%)\n"
                "- Tipografia: Inter, 16px base, escala 1.25\n"
                "- Espaçamento: múltiplos de 4px\n\n"
                "## Wireframes\n"
                "- Tela inicial com cabeçalho, conteúdo principal e rodapé\n"
                "- Layout mobile-first com breakpoints em 640px, 768px e 1024px\n\n"
                "## Acessibilidade\n"
                "- Contraste mínimo 4.5:1\n"
                "- Foco visível em todos os elementos interativos\n"
            ),
            "frontend-dev": (
                "// src/App.tsx\n"
                "import React, { useState } from 'react';\n\n"
                "export const App: React.FC = () => {\n"
                "  const [value, setValue] = useState('');\n\n"
                "  return (\n"
                "    <main className=\"min-h-screen p-6\">\n"
                "      <h1>Aplicação</h1>\n"
                "      <input value={value} onChange={(e) => setValue(e.target.value)} placeholder=\"Digite algo...\" />\n"
                "    </main>\n"
                "  );\n"
                "};\n\n"
                "export default App;\n"
            ),
            "backend-dev": (
                "// server/api.js\n"
                "const express = require('express');\n"
                "const app = express();\n\n"
                "app.use(express.json());\n\n"
                "app.get('/health', (req, res) => res.json({ status: 'OK' }));\n\n"
                "app.listen(process.env.PORT || 3001);\n"
            ),
            "developer": (
                "# Implementação\n\n"
                "```bash\n"
                "npm install\n"
                "npm run dev\n"
                "```\n\n"
                "## Estrutura\n"
                "- src/components/ - Componentes\n"
                "- src/services/ - Serviços da aplicação\n"
                "- src/types/ - Definições de tipos\n"
            ),
            "devops": (
                "# Dockerfile\n"
                "FROM node:20-alpine AS build\n"
                "WORKDIR /app\n"
                "COPY package*.json ./\n"
                "RUN npm ci\n"
                "COPY . .\n"
                "RUN npm run build\n\n"
                "FROM nginx:alpine\n"
                "COPY --from=build /app/dist /usr/share/nginx/html\n"
                "EXPOSE 80\n"
            ),
            "qa-engineer": (
                "# Plano de Testes\n\n"
                "## Casos Funcionais\n"
                "1. Renderização da tela inicial\n"
                "2. Fluxo principal completo\n"
                "3. Estados de erro e carregamento\n\n"
                "## Metas de Cobertura\n"
                "- Statements, branches, functions e lines acima de 80%\n"
            ),
            "legal": (
                "# Documentação Legal\n\n"
                "## Licença\n"
                "MIT\n\n"
                "## Privacidade (LGPD)\n"
                "- Base legal: consentimento do titular\n"
                "- Direitos: acesso, correção e exclusão dos dados\n\n"
                "## Segurança\n"
                "Vulnerabilidades devem ser reportadas de forma responsável ao time de manutenção.\n"
            ),
            "release-manager": (
                "# Release Notes\n\n"
                "## Versão 1.0.0\n"
                "- Primeira versão do MVP\n\n"
                "## Instalação\n"
                "1. Instale as dependências\n"
                "2. Configure as variáveis de ambiente\n"
                "3. Execute o build e publique\n\n"
                "## Problemas Conhecidos\n"
                "- Nenhum registrado\n"
            ),
            "copywriter": (
                "# Conteúdo do Projeto\n\n"
                "## Título\n"
                "Uma solução moderna para o seu dia a dia\n\n"
                "## Benefícios\n"
                "- Fácil de usar\n"
                "- Rápida e confiável\n\n"
                "## Chamada para Ação\n"
                "Experimente agora!\n"
            ),
            "system-analyst": (
                "# Análise de Sistema\n\n"
                "## Arquitetura\n"
                "- Frontend: React + TypeScript\n"
                "- Backend: Node.js + Express\n"
                "- Banco de dados: PostgreSQL\n\n"
                "## Segurança\n"
                "- Autenticação JWT\n"
                "- Validação de entrada\n"
                "- Rate limiting\n"
            ),
        }

    def resolve_family(self, role: str) -> str | None:
        normalized = (role or "").lower().replace("_", "-")
        for family, terms in ROLE_FAMILIES:
            if any(term in normalized for term in terms):
                return family
        return None

    def render(self, prompt: str, role: str) -> str:
        """Retorna o template da família do papel ou um template genérico"""
        family = self.resolve_family(role)
        if family in self.fallback_templates:
            logger.warning(f"Executando fallback determinístico para '{role}' (família {family})")
            return self.fallback_templates[family]

        logger.warning(f"Executando fallback genérico para '{role}'")
        return (
            f"# Arquivo gerado para {role}\n\n"
            "Este arquivo foi criado automaticamente pelo sistema de agentes.\n\n"
            "## Conteúdo\n"
            f"- Implementação específica para {role}\n"
            "- Seguindo boas práticas\n\n"
            "## Próximos passos\n"
            "1. Revisar implementação\n"
            "2. Testar funcionalidades\n"
            "3. Integrar com o sistema\n"
        )
