"""
Core constants for bleperiph.

This module provides centralized constants for BlueZ peripheral operations, organized by category.
"""

# D-Bus Core Constants
DBUS_PROPERTIES = "org.freedesktop.DBus.Properties"
DBUS_OM_IFACE = "org.freedesktop.DBus.ObjectManager"

# BlueZ Core Constants
BLUEZ_SERVICE_NAME = "org.bluez"
BLUEZ_OM_PATH = "/"

# BlueZ Interface Constants
ADAPTER_INTERFACE = BLUEZ_SERVICE_NAME + ".Adapter1"
DEVICE_INTERFACE = BLUEZ_SERVICE_NAME + ".Device1"

# GATT Interface Constants
GATT_MANAGER_INTERFACE = BLUEZ_SERVICE_NAME + ".GattManager1"
GATT_SERVICE_INTERFACE = BLUEZ_SERVICE_NAME + ".GattService1"
GATT_CHARACTERISTIC_INTERFACE = BLUEZ_SERVICE_NAME + ".GattCharacteristic1"

# Advertisement Interface Constants
ADVERTISEMENT_INTERFACE = BLUEZ_SERVICE_NAME + ".LEAdvertisement1"
ADVERTISING_MANAGER_INTERFACE = BLUEZ_SERVICE_NAME + ".LEAdvertisingManager1"

# Advertisement property keys
ADVERTISEMENT_TYPE_PROPERTY_KEY = "Type"
ADVERTISEMENT_SERVICE_UUIDS_PROPERTY_KEY = "ServiceUUIDs"
ADVERTISEMENT_SOLICIT_UUIDS_PROPERTY_KEY = "SolicitUUIDs"
ADVERTISEMENT_MANUFACTURER_DATA_PROPERTY_KEY = "ManufacturerData"
ADVERTISEMENT_SERVICE_DATA_PROPERTY_KEY = "ServiceData"
ADVERTISEMENT_INCLUDE_TX_POWER_PROPERTY_KEY = "IncludeTxPower"

# Device property used for connection tracking
DEVICE_ADDRESS_PROPERTY_KEY = "Address"

# D-Bus error names raised by exported objects
DBUS_ERROR_INVALID_ARGS = "org.freedesktop.DBus.Error.InvalidArgs"
BLUEZ_ERROR_FAILED = "org.bluez.Error.Failed"
BLUEZ_ERROR_NOT_PERMITTED = "org.bluez.Error.NotPermitted"
BLUEZ_ERROR_NOT_SUPPORTED = "org.bluez.Error.NotSupported"
BLUEZ_ERROR_INVALID_OFFSET = "org.bluez.Error.InvalidOffset"

# Result/Error Codes
RESULT_OK = 0
RESULT_ERR = 1
RESULT_ERR_NOT_SUPPORTED = 3
RESULT_ERR_WRONG_STATE = 5
RESULT_ERR_ACCESS_DENIED = 6
RESULT_ERR_BAD_ARGS = 8
RESULT_ERR_NOT_FOUND = 9
RESULT_ERR_METHOD_SIGNATURE_NOT_EXIST = 10
RESULT_ERR_NO_REPLY = 14
RESULT_ERR_ACTION_IN_PROGRESS = 16
RESULT_ERR_UNKNOWN_SERVCE = 17
RESULT_ERR_UNKNOWN_OBJECT = 18
RESULT_ERR_NOT_PERMITTED = 22
RESULT_ERR_NOT_AUTHORIZED = 23
RESULT_ERR_ALREADY_EXISTS = 27
RESULT_ERR_DOES_NOT_EXIST = 28
RESULT_ERR_REFERENCE_LOST = 29
RESULT_ERR_NO_ADAPTER = 30
RESULT_ERR_BAD_CONFIG = 31
