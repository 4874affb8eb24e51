# ROHC CRC-8: x^8 + x^2 + x + 1, computed LSB first
CRC8_POLYNOMIAL = 0xE0
CRC8_INIT = 0xFF


def init_table(polynomial):
    table = []
    for i in range(256):
        crc = i
        for _ in range(8):
            if crc & 1:
                crc = (crc >> 1) ^ polynomial
            else:
                crc >>= 1
        table.append(crc)
    return table


CRC8_TABLE = init_table(CRC8_POLYNOMIAL)


def crc8(data, init=CRC8_INIT):
    crc = init
    for byte in data:
        crc = CRC8_TABLE[crc ^ byte]
    return crc
