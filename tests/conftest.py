import base64
import sys
from pathlib import Path

import pytest

# Ensure `src` is on sys.path for tests when not installed editable.
ROOT = Path(__file__).resolve().parent.parent
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from fission_upgrade.models.v1 import (  # noqa: E402
    Environment,
    Function,
    HTTPTrigger,
    Metadata,
    MessageQueueTrigger,
    TimeTrigger,
    V1State,
    Watch,
)


def b64(text: str) -> str:
    return base64.b64encode(text.encode()).decode()


def make_function(name: str, env: str = "nodejs", uid=None, code: str = "module.exports = 1") -> Function:
    return Function(
        metadata=Metadata(name=name, uid=uid),
        environment=Metadata(name=env),
        code=b64(code),
    )


@pytest.fixture
def sample_state() -> V1State:
    """Small v1 state with invalid names and one function referenced twice."""
    return V1State(
        environments=[
            Environment(metadata=Metadata(name="nodejs"), runContainerImageUrl="fission/node-env"),
            Environment(metadata=Metadata(name="Python_3"), runContainerImageUrl="fission/python-env"),
        ],
        functions=[
            make_function("hello", env="nodejs", uid="u1"),
            make_function("My_Func", env="Python_3", uid="u2"),
        ],
        httptriggers=[
            HTTPTrigger(
                metadata=Metadata(name="route_hello"),
                urlpattern="/hello",
                method="GET",
                function=Metadata(name="hello", uid="u1"),
            ),
            HTTPTrigger(
                metadata=Metadata(name="route-myfunc"),
                urlpattern="/my",
                method="POST",
                function=Metadata(name="My_Func", uid="u2"),
            ),
        ],
        mqtriggers=[
            MessageQueueTrigger(
                metadata=Metadata(name="mq.1"),
                function=Metadata(name="hello", uid="u0"),
                messageQueueType="nats-streaming",
                topic="in",
                respTopic="out",
            )
        ],
        timetriggers=[
            TimeTrigger(
                metadata=Metadata(name="Every Minute"),
                cron="@every 1m",
                function=Metadata(name="My_Func"),
            )
        ],
        watches=[
            Watch(
                metadata=Metadata(name="pods"),
                namespace="default",
                objtype="pod",
                function=Metadata(name="hello"),
            )
        ],
    )
