"""Builds run-task requests from run parameters."""

from ecstask.models import LaunchRequest, NetworkConfiguration, RunParameters


def build_launch_request(params: RunParameters, task_definition_arn: str) -> LaunchRequest:
    """Turn validated run parameters into a launch request.

    The command override only targets ``params.container``; other containers
    run with the command from the task definition. CPU and memory are
    overridden together or not at all. Network configuration and platform
    version are only sent when subnets are given, whatever the launch mode.
    """
    cpu = memory = None
    if params.cpu and params.memory:
        cpu, memory = params.cpu, params.memory

    network = None
    platform_version = None
    if params.subnets:
        network = NetworkConfiguration(
            subnets=params.subnets,
            security_groups=params.security_groups,
            assign_public_ip=params.assign_public_ip,
        )
        # An explicit empty platform version is not the same as omitting it
        platform_version = params.platform_version or None

    return LaunchRequest(
        cluster=params.cluster,
        task_definition_arn=task_definition_arn,
        launch_mode=params.launch_mode,
        container=params.container,
        command=params.command,
        cpu=cpu,
        memory=memory,
        network=network,
        platform_version=platform_version,
    )
