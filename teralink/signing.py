import base64


def sign2(key:str, data:str) -> str:
    """RC4 keystream XOR the share/download APIs expect for ``sign``.

    ``key`` is ``sign3`` and ``data`` is ``sign1`` from ``/api/home/info``.
    Characters are treated as code points below 256, as the upstream routine
    does.
    """
    if not key:
        raise ValueError('sign2 key must not be empty')

    state = list(range(256))
    j = 0
    for i in range(256):
        j = (j + state[i] + ord(key[i % len(key)])) % 256
        state[i], state[j] = state[j], state[i]

    out = []
    i = j = 0
    for char in data:
        i = (i + 1) % 256
        j = (j + state[i]) % 256
        state[i], state[j] = state[j], state[i]
        out.append(chr(ord(char) ^ state[(state[i] + state[j]) % 256]))
    return ''.join(out)


def make_signature(sign3:str, sign1:str) -> str:
    return base64.b64encode(sign2(sign3, sign1).encode('latin-1')).decode('ascii')
