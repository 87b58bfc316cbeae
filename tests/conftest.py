import gzip

import pytest

from archives import go_tree, make_tarball
from godeb.platforms import Platform


@pytest.fixture
def linux_amd64() -> Platform:
    return Platform(os="linux", arch="amd64")


@pytest.fixture
def go_tarball() -> bytes:
    return make_tarball(go_tree())


@pytest.fixture
def truncated_tarball() -> bytes:
    """Valid gzip framing cut off in the middle of the go binary's data."""
    tar_bytes = make_tarball(go_tree(), compression="")
    # headers for go/, go/bin/, go/bin/go take 3 * 512 bytes; stop inside the data
    cut = tar_bytes[: 3 * 512 + 700]
    return gzip.compress(cut)
