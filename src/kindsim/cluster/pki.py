"""Key material for a cluster.

kind's kubeadm reuses a CA found in the mounted pki directory, so the
cluster only needs a CA plus the admin client certificate the
auxiliary components authenticate with.
"""

from __future__ import annotations

import ipaddress
import socket
from pathlib import Path

from ..runtime import dryrun
from ..runtime.executor import Executor
from ..shared.logging import get_logger

logger = get_logger(__name__)

CERT_DAYS = "3650"


def local_addresses() -> list[str]:
    """Addresses of this host, used as certificate SANs."""
    addresses = ["127.0.0.1", "localhost"]
    try:
        infos = socket.getaddrinfo(socket.gethostname(), None)
    except OSError as e:
        logger.warning("Failed to get all ips", err=str(e))
        return addresses
    for info in infos:
        address = str(info[4][0]).split("%", 1)[0]
        if address not in addresses:
            addresses.append(address)
    return addresses


def _san_entry(value: str) -> str:
    try:
        ipaddress.ip_address(value)
    except ValueError:
        return f"DNS:{value}"
    return f"IP:{value}"


async def generate_pki(executor: Executor, pki_dir: Path, sans: list[str]) -> None:
    """Generate ``ca.{crt,key}`` and ``admin.{crt,key}`` in ``pki_dir``.

    Args:
        executor: Executor used to run openssl.
        pki_dir: Existing directory receiving the files.
        sans: Subject alternative names of the admin certificate.
    """
    ca_key = pki_dir / "ca.key"
    ca_crt = pki_dir / "ca.crt"
    admin_key = pki_dir / "admin.key"
    admin_csr = pki_dir / "admin.csr"
    admin_crt = pki_dir / "admin.crt"
    ext_file = pki_dir / "admin.ext"

    await executor.run(
        "openssl", "req", "-x509", "-newkey", "rsa:2048", "-nodes",
        "-keyout", str(ca_key), "-out", str(ca_crt),
        "-days", CERT_DAYS, "-subj", "/CN=kubernetes",
    )
    await executor.run(
        "openssl", "req", "-newkey", "rsa:2048", "-nodes",
        "-keyout", str(admin_key), "-out", str(admin_csr),
        "-subj", "/O=system:masters/CN=kubernetes-admin",
    )

    entries = ",".join(_san_entry(san) for san in dict.fromkeys(sans))
    extensions = "extendedKeyUsage=clientAuth,serverAuth\n"
    if entries:
        extensions += f"subjectAltName={entries}\n"
    if executor.dry_run:
        dryrun.print_message(f"cat <<EOF >{ext_file}\n{extensions}EOF")
    else:
        ext_file.write_text(extensions)

    await executor.run(
        "openssl", "x509", "-req", "-in", str(admin_csr),
        "-CA", str(ca_crt), "-CAkey", str(ca_key), "-CAcreateserial",
        "-out", str(admin_crt), "-days", CERT_DAYS, "-extfile", str(ext_file),
    )
    if not executor.dry_run:
        for leftover in (admin_csr, ext_file):
            leftover.unlink(missing_ok=True)
