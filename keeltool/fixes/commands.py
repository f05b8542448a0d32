"""
Comandos por plataforma para las herramientas base (check / install / start / running).
"""

from dataclasses import dataclass
from typing import Dict, Optional, Tuple


@dataclass(frozen=True)
class ToolCommands:
    check: str
    install: str
    start: Optional[str] = None
    running: Optional[str] = None
    manual: str = ""

    @property
    def manual_fix(self) -> str:
        return self.manual or self.install


COMMANDS: Dict[str, Dict[str, ToolCommands]] = {
    "ubuntu": {
        "docker": ToolCommands(
            check="command -v docker",
            install="curl -fsSL https://get.docker.com | sudo sh && sudo usermod -aG docker $USER",
            start="sudo systemctl start docker",
            running="docker info",
            manual="Instala Docker: curl -fsSL https://get.docker.com | sudo sh",
        ),
        "git": ToolCommands(
            check="command -v git",
            install="sudo apt-get update && sudo apt-get install -y git",
        ),
        "node": ToolCommands(
            check="command -v node",
            install="curl -fsSL https://deb.nodesource.com/setup_20.x | sudo -E bash - && sudo apt-get install -y nodejs",
        ),
        "pnpm": ToolCommands(check="command -v pnpm", install="sudo npm install -g pnpm"),
        "certbot": ToolCommands(
            check="command -v certbot",
            install="sudo apt-get update && sudo apt-get install -y certbot",
        ),
        "aws": ToolCommands(check="command -v aws", install="sudo snap install aws-cli --classic"),
    },
    "amazon-linux": {
        "docker": ToolCommands(
            check="command -v docker",
            install="sudo dnf install -y docker && sudo usermod -aG docker $USER",
            start="sudo systemctl enable --now docker",
            running="docker info",
        ),
        "git": ToolCommands(check="command -v git", install="sudo dnf install -y git"),
        "node": ToolCommands(check="command -v node", install="sudo dnf install -y nodejs"),
        "pnpm": ToolCommands(check="command -v pnpm", install="sudo npm install -g pnpm"),
        "certbot": ToolCommands(check="command -v certbot", install="sudo dnf install -y certbot"),
        "aws": ToolCommands(check="command -v aws", install="sudo dnf install -y awscli"),
    },
    "mac": {
        "brew": ToolCommands(
            check="command -v brew",
            install='NONINTERACTIVE=1 /bin/bash -c "$(curl -fsSL https://raw.githubusercontent.com/Homebrew/install/HEAD/install.sh)"',
        ),
        "docker": ToolCommands(
            check="command -v docker",
            install="brew install --cask docker",
            start="open -a Docker",
            running="docker info",
            manual="Instala Docker Desktop: brew install --cask docker && open -a Docker",
        ),
        "git": ToolCommands(check="command -v git", install="brew install git"),
        "node": ToolCommands(check="command -v node", install="brew install node"),
        "pnpm": ToolCommands(check="command -v pnpm", install="brew install pnpm"),
        "certbot": ToolCommands(check="command -v certbot", install="brew install certbot"),
        "aws": ToolCommands(check="command -v aws", install="brew install awscli"),
    },
}


def commands_for(os: str, tool: str) -> ToolCommands:
    """
    Raises:
        KeyError: OS o herramienta sin comandos definidos
    """
    try:
        return COMMANDS[os][tool]
    except KeyError:
        raise KeyError(f"Sin comandos para '{tool}' en '{os}'")


def tool_table(os: str) -> Dict[str, Tuple[str, str]]:
    """{tool: (check, install)} para ServerPlugin.tools."""
    return {tool: (c.check, c.install) for tool, c in COMMANDS[os].items()}
