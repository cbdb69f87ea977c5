"""
Constants used throughout the webhook manager.

This module defines all fixed values used when registering admission
webhooks, including:
- Webhook configuration kinds and API versions
- The ten registration identities (five roles, standard and debug)
- Service paths served by the admission server
- Labels used to discover the admission pod and managed secrets
"""

# Webhook configuration kinds
KIND_MUTATING = "MutatingWebhookConfiguration"
KIND_VALIDATING = "ValidatingWebhookConfiguration"
ADMISSION_API_VERSION = "admissionregistration.k8s.io/v1"

# Debug variants carry this suffix so both variants can coexist
DEBUG_NAME_SUFFIX = "-debug"

# Resource webhooks (admission of arbitrary resources)
RESOURCE_MUTATING_WEBHOOK_CONFIGURATION_NAME = "kyverno-resource-mutating-webhook-cfg"
RESOURCE_MUTATING_WEBHOOK_NAME = "mutate.kyverno.svc"
RESOURCE_VALIDATING_WEBHOOK_CONFIGURATION_NAME = (
    "kyverno-resource-validating-webhook-cfg"
)
RESOURCE_VALIDATING_WEBHOOK_NAME = "validate.kyverno.svc"

# Policy webhooks (admission of policy resources themselves)
POLICY_MUTATING_WEBHOOK_CONFIGURATION_NAME = "kyverno-policy-mutating-webhook-cfg"
POLICY_MUTATING_WEBHOOK_NAME = "mutate-policy.kyverno.svc"
POLICY_VALIDATING_WEBHOOK_CONFIGURATION_NAME = "kyverno-policy-validating-webhook-cfg"
POLICY_VALIDATING_WEBHOOK_NAME = "validate-policy.kyverno.svc"

# Deployment self-check webhook
VERIFY_MUTATING_WEBHOOK_CONFIGURATION_NAME = "kyverno-verify-mutating-webhook-cfg"
VERIFY_MUTATING_WEBHOOK_NAME = "monitor-webhooks.kyverno.svc"

# Service paths served by the admission server
RESOURCE_MUTATING_WEBHOOK_SERVICE_PATH = "/mutate"
RESOURCE_VALIDATING_WEBHOOK_SERVICE_PATH = "/validate"
POLICY_MUTATING_WEBHOOK_SERVICE_PATH = "/policymutate"
POLICY_VALIDATING_WEBHOOK_SERVICE_PATH = "/policyvalidate"
VERIFY_MUTATING_WEBHOOK_SERVICE_PATH = "/verifymutate"

# Match rules
POLICY_API_GROUP = "kyverno.io"
POLICY_API_VERSION = "v1"
POLICY_RESOURCES = ["clusterpolicies/*", "policies/*"]
ALL_RESOURCES = ["*/*"]

# Admission review settings
ADMISSION_REVIEW_VERSIONS = ["v1", "v1beta1"]
DEFAULT_FAILURE_POLICY = "Ignore"
SERVICE_PORT = 443

# Timeout bounds accepted by the API server (seconds)
MIN_WEBHOOK_TIMEOUT = 1
MAX_WEBHOOK_TIMEOUT = 30
DEFAULT_WEBHOOK_TIMEOUT = 3

# Pod discovery for the readiness gate
ADMISSION_POD_LABELS = {"app.kubernetes.io/name": "kyverno"}

# Managed secrets removed on shutdown
MANAGED_BY_LABEL_KEY = "cert.kyverno.io/managed-by"
MANAGED_BY_LABEL_VALUE = "kyverno"

# CA secret produced by the certificate renewer
CA_SECRET_SUFFIX = "kyverno-tls-ca"
CA_SECRET_KEY = "rootCA.crt"

# Key holding dynamic webhook settings in the init ConfigMap
WEBHOOKS_CONFIG_KEY = "webhooks"
