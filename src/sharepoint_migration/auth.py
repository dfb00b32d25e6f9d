# -*- coding: utf-8 -*-
"""
Microsoft authentication module for SharePoint migration.

This module handles Azure AD app-only authentication using MSAL (Microsoft
Authentication Library). Certificate credentials are preferred; a client
secret is accepted as a fallback.
"""

import threading
import time
import msal
from .exceptions import ConfigError, RemoteConnectionError


def load_certificate_credential(thumbprint, certificate_path):
    """
    Build an MSAL certificate credential from a PEM private key file.

    Args:
        thumbprint (str): SHA-1 thumbprint of the certificate registered in Azure AD
        certificate_path (str): Path to the PEM file holding the private key

    Returns:
        dict: Credential accepted by msal.ConfidentialClientApplication

    Raises:
        ConfigError: If the key file cannot be read
    """
    try:
        with open(certificate_path, 'r', encoding='utf-8') as f:
            private_key = f.read()
    except OSError as e:
        raise ConfigError(f"Cannot read certificate file {certificate_path}: {e}") from e

    return {
        "thumbprint": thumbprint.replace(' ', '').replace(':', ''),
        "private_key": private_key,
    }


def build_client_credential(client_secret=None, cert_thumbprint=None, cert_path=None):
    """
    Pick the client credential to authenticate with.

    Returns:
        tuple: (credential, kind) where kind is 'certificate' or 'secret'

    Raises:
        ConfigError: If no usable credential is configured
    """
    if cert_thumbprint and cert_path:
        return load_certificate_credential(cert_thumbprint, cert_path), 'certificate'
    if client_secret:
        return client_secret, 'secret'
    raise ConfigError(
        "No credential configured: set certificateThumbprint and certificatePath, or clientSecret"
    )


def _auth_failure_hints(error_msg, error_desc, error_codes, kind, login_endpoint, graph_endpoint):
    """
    Map an MSAL error to a short title and troubleshooting steps.

    Returns:
        tuple: (title, steps), or (None, None) for errors without specific hints
    """
    if "invalid_client" in error_msg or 7000215 in error_codes:
        if kind == 'certificate':
            credential_steps = [
                "Verify the certificate thumbprint matches the one uploaded to the app",
                "Verify the PEM file holds the matching private key",
            ]
        else:
            credential_steps = [
                "Verify SP_CLIENT_SECRET is correct and hasn't been copied with extra spaces",
                "Check if the client secret has expired in the Entra ID portal",
            ]
        return "Invalid client credentials", [
            "Verify SP_CLIENT_ID matches the app registration",
            *credential_steps,
            "Ensure you're using the correct SP_TENANT_ID",
        ]

    if "unauthorized_client" in error_msg or 700016 in error_codes:
        return "Application not authorized", [
            "Open the app registration in the Entra ID portal",
            "Check 'API permissions' lists Microsoft Graph Sites.ReadWrite.All (application)",
            "Grant admin consent (requires admin privileges)",
        ]

    if "invalid_scope" in error_msg or "AADSTS70011" in error_desc:
        return "Invalid scope", [
            f"Verify graphEndpoint is correct: {graph_endpoint}",
            "Commercial cloud: graph.microsoft.com, GovCloud: graph.microsoft.us",
        ]

    if "invalid_request" in error_msg:
        return "Invalid request", [
            "Verify the tenant ID format (should be a GUID)",
            f"Verify loginEndpoint is correct: {login_endpoint}",
            "Commercial cloud: login.microsoftonline.com, GovCloud: login.microsoftonline.us",
        ]

    return None, None


def _report_auth_failure(token, kind, login_endpoint, graph_endpoint):
    """Print troubleshooting hints and raise RemoteConnectionError."""
    error_msg = token.get("error", "unknown_error")
    error_desc = token.get("error_description", "No description provided")
    error_codes = token.get("error_codes", [])

    title, steps = _auth_failure_hints(error_msg, error_desc, error_codes, kind,
                                       login_endpoint, graph_endpoint)

    print("[!] ========================================")
    print("[!] AUTHENTICATION FAILED")
    print("[!] ========================================")
    print(f"[!] Error: {title or error_msg}")
    if steps:
        print("[!] Troubleshooting steps:")
        for number, step in enumerate(steps, 1):
            print(f"[!]   {number}. {step}")
    else:
        print("[!] Check network access to the Microsoft identity platform and the tenant ID")
    print(f"[!] Technical details: {error_desc}")
    if error_codes:
        print(f"[!] Error codes: {error_codes}")
    print("[!] ========================================")

    if title:
        raise RemoteConnectionError(f"Authentication failed: {title} - {error_desc}")
    raise RemoteConnectionError(f"Authentication failed: {error_msg} - {error_desc}")


class TokenProvider:
    """
    Thread-safe access token source for Microsoft Graph.

    Wraps a single msal.ConfidentialClientApplication. MSAL caches the app
    token in memory and only goes back to Azure AD when it is close to
    expiry, so get_token() is cheap to call before every request.

    Args:
        tenant_id (str): Azure AD tenant ID
        client_id (str): Application (client) ID
        client_secret (str): Client secret, used when no certificate is set
        cert_thumbprint (str): Certificate thumbprint
        cert_path (str): PEM private key path
        login_endpoint (str): e.g. 'login.microsoftonline.com'
        graph_endpoint (str): e.g. 'graph.microsoft.com'
    """

    def __init__(self, tenant_id, client_id, client_secret=None, cert_thumbprint=None,
                 cert_path=None, login_endpoint='login.microsoftonline.com',
                 graph_endpoint='graph.microsoft.com'):
        self.login_endpoint = login_endpoint
        self.graph_endpoint = graph_endpoint
        self.credential_kind = None
        self._lock = threading.Lock()
        self._token = None
        self._expires_at = 0

        credential, self.credential_kind = build_client_credential(
            client_secret, cert_thumbprint, cert_path
        )

        # Format: https://login.microsoftonline.com/{tenant_id}
        authority_url = f'https://{login_endpoint}/{tenant_id}'
        self.app = msal.ConfidentialClientApplication(
            client_id=client_id,
            authority=authority_url,
            client_credential=credential,
        )
        self.scopes = [f"https://{graph_endpoint}/.default"]

    def acquire(self):
        """
        Request a token from Azure AD.

        Returns:
            dict: MSAL token dictionary with 'access_token' and 'token_type'

        Raises:
            RemoteConnectionError: If authentication fails
        """
        token = self.app.acquire_token_for_client(scopes=self.scopes)
        if "access_token" not in token:
            _report_auth_failure(token, self.credential_kind, self.login_endpoint, self.graph_endpoint)
        return token

    def get_token(self):
        """Return a valid token dictionary, refreshing it a minute before expiry."""
        with self._lock:
            if self._token is None or time.time() >= self._expires_at - 60:
                self._token = self.acquire()
                self._expires_at = time.time() + int(self._token.get('expires_in', 3600))
            return self._token

    def authorization_header(self):
        """Return the Authorization header value for Graph requests."""
        token = self.get_token()
        return f"{token.get('token_type', 'Bearer')} {token['access_token']}"
