import numpy as np
import torch


def get_test_devices():
    devices = [('cpu', 1), ('cpu', 4)]
    if torch.cuda.is_available():
        print('cuda backend available')
        devices.append('cuda')
    return devices


def init_device(device):
    if isinstance(device, (list, tuple)):
        device, param = device
    else:
        param = 1 if device == 'cpu' else 0
    if device == 'cuda':
        torch.cuda.set_device(param)
        torch.cuda.init()
        try:
            torch.cuda.empty_cache()
        except RuntimeError:
            pass
        device = '{}:{}'.format(device, param)
    else:
        assert device == 'cpu'
        torch.set_num_threads(param)
    device = torch.device(device)
    return device


def get_tol(dtype):
    return 1e-4 if dtype == torch.float32 else 1e-10


def band_to_scipy(store):
    """Lower banded layout expected by `scipy.linalg.solveh_banded`."""
    n, m = store.n, store.m
    band = store.band.double().cpu().numpy()
    ab = np.zeros([m + 1, n])
    ab[0] = store.diag.double().cpu().numpy()
    for k in range(1, m + 1):
        ab[k, :n - k] = band[k:, m - k]
    return ab
