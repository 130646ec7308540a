"""Target CLI providers and provider detection"""

import re
from enum import Enum

from pydantic import BaseModel, Field


class Provider(str, Enum):
    """Command-line tools the translator knows how to target"""

    IBMCLOUD = "ibmcloud"
    AWS = "aws"
    GCP = "gcp"
    AZURE = "azure"
    VMWARE = "vmware"

    @property
    def cli_command(self) -> str:
        """Executable name commands for this provider must start with"""
        return _CLI_COMMANDS[self]

    @property
    def display_name(self) -> str:
        return _DISPLAY_NAMES[self]

    @property
    def prompt_guidance(self) -> str:
        """Short command reference included in generation prompts"""
        return _PROMPT_GUIDANCE[self]

    @classmethod
    def from_str(cls, value: str) -> "Provider | None":
        """Parse a provider from its name, executable or a common alias"""
        return _ALIASES.get(value.strip().lower())


_CLI_COMMANDS = {
    Provider.IBMCLOUD: "ibmcloud",
    Provider.AWS: "aws",
    Provider.GCP: "gcloud",
    Provider.AZURE: "az",
    Provider.VMWARE: "govc",
}

_DISPLAY_NAMES = {
    Provider.IBMCLOUD: "IBM Cloud",
    Provider.AWS: "AWS",
    Provider.GCP: "Google Cloud Platform",
    Provider.AZURE: "Microsoft Azure",
    Provider.VMWARE: "VMware vSphere",
}

_ALIASES = {
    "ibmcloud": Provider.IBMCLOUD,
    "ibm": Provider.IBMCLOUD,
    "aws": Provider.AWS,
    "amazon": Provider.AWS,
    "gcp": Provider.GCP,
    "gcloud": Provider.GCP,
    "google": Provider.GCP,
    "azure": Provider.AZURE,
    "az": Provider.AZURE,
    "microsoft": Provider.AZURE,
    "vmware": Provider.VMWARE,
    "vsphere": Provider.VMWARE,
    "govc": Provider.VMWARE,
    "vmc": Provider.VMWARE,
}

_PROMPT_GUIDANCE = {
    Provider.IBMCLOUD: (
        "- List service instances: 'ibmcloud resource service-instances [--service-name NAME]'\n"
        "- List resource groups: 'ibmcloud resource groups'\n"
        "- Code Engine apps: 'ibmcloud ce app list'\n"
        "- Login with SSO: 'ibmcloud login --sso'\n"
        "- Always use double dashes (--) for multi-character options"
    ),
    Provider.AWS: (
        "- EC2 instances: 'aws ec2 describe-instances'\n"
        "- S3 buckets: 'aws s3 ls'\n"
        "- Caller identity: 'aws sts get-caller-identity'"
    ),
    Provider.GCP: (
        "- Compute instances: 'gcloud compute instances list'\n"
        "- GKE clusters: 'gcloud container clusters list'\n"
        "- Active project: 'gcloud config get-value project'"
    ),
    Provider.AZURE: (
        "- Virtual machines: 'az vm list'\n"
        "- Resource groups: 'az group list'\n"
        "- AKS clusters: 'az aks list'"
    ),
    Provider.VMWARE: (
        "- Virtual machines: 'govc ls /dc/vm'\n"
        "- VM details: 'govc vm.info NAME'\n"
        "- Datastores: 'govc datastore.info'"
    ),
}

_DETECTION_KEYWORDS: list[tuple[Provider, tuple[str, ...]]] = [
    (Provider.IBMCLOUD, ("ibmcloud", "ibm cloud", "watson", "code engine")),
    (Provider.AWS, ("aws", "ec2", "s3", "lambda", "eks")),
    (Provider.GCP, ("gcloud", "gcp", "compute engine", "gke", "cloud storage")),
    (Provider.AZURE, ("azure", "az", "aks", "virtual machine")),
    (Provider.VMWARE, ("vmware", "vsphere", "govc", "esxi", "vcenter", "vmc")),
]


class ProviderDetection(BaseModel):
    """Result of guessing the target provider from a request"""

    provider: Provider = Field(description="Detected provider")
    confidence: float = Field(ge=0.0, le=1.0, description="Detection confidence")
    reason: str = Field(description="Why this provider was chosen")


def detect_provider_from_query(query: str) -> ProviderDetection | None:
    """Guess the target provider from keywords in a natural-language request"""
    query_lower = query.lower()
    for provider, keywords in _DETECTION_KEYWORDS:
        for keyword in keywords:
            if re.search(rf"\b{re.escape(keyword)}\b", query_lower):
                return ProviderDetection(
                    provider=provider,
                    confidence=0.9,
                    reason=f"Query mentions '{keyword}'",
                )
    return None


def cli_command_for(hint: "Provider | str | None") -> str | None:
    """
    Resolve the expected executable name for a provider hint

    Known providers and their aliases map to their CLI; any other non-empty hint is
    taken to be the executable name itself.
    """
    if hint is None:
        return None
    if isinstance(hint, Provider):
        return hint.cli_command
    hint = hint.strip()
    if not hint:
        return None
    provider = Provider.from_str(hint)
    return provider.cli_command if provider else hint
