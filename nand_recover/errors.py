# SPDX-License-Identifier: GPL-2.0-only
# Copyright (C) 2025 Gilderchuck


class NandRecoverError(Exception):
    pass


class InvalidLayout(NandRecoverError, ValueError):
    pass


class MisalignedFile(NandRecoverError):
    pass


class CodecInitError(NandRecoverError):
    pass


class NoPlausibleLayout(NandRecoverError):
    pass


class NoWorkingParameters(NandRecoverError):
    pass


# raised from inside a worker when the caller set the cancel event,
# partially written outputs are left in place
class Cancelled(NandRecoverError):
    pass


def check_cancel(cancel):
    if cancel is not None and cancel.is_set():
        raise Cancelled("operation cancelled")
