"""Boot ROM error codes.

The codes are numbered consecutively from zero in the order listed here.
``NumErrors`` is always last, so its value is the number of codes before it.
"""

from __future__ import annotations

from enum import IntEnum, auto


class NvBootError(IntEnum):
    """Error codes reported by the Boot ROM."""

    @staticmethod
    def _generate_next_value_(name, start, count, last_values):
        return count

    Success = auto()
    InvalidParameter = auto()
    IllegalParameter = auto()
    HwTimeOut = auto()
    NotInitialized = auto()
    DeviceNotResponding = auto()
    DataCorrupted = auto()
    DataUnderflow = auto()
    DeviceError = auto()
    DeviceReadError = auto()
    DeviceUnsupported = auto()
    DeviceResponseError = auto()
    Unimplemented = auto()
    ValidationFailure = auto()
    EccDiscoveryFailed = auto()
    EccFailureCorrected = auto()
    EccFailureUncorrected = auto()
    Busy = auto()
    Idle = auto()
    MemoryNotAllocated = auto()
    MemoryNotAligned = auto()
    BctNotFound = auto()
    BctSizeError = auto()
    BootLoaderLoadFailure = auto()
    BctBlockInfoMismatch = auto()
    BctBootloaderVersionMismatch = auto()
    IdentificationFailed = auto()
    HashMismatch = auto()
    TxferFailed = auto()
    WriteFailed = auto()
    EpNotConfigured = auto()
    WarmBoot0_Failure = auto()
    AccessDenied = auto()
    InvalidOscFrequency = auto()
    PllNotLocked = auto()
    InvalidDevParams = auto()
    InvalidBootDeviceEncoding = auto()
    CableNotConnected = auto()
    InvalidBlDst = auto()
    # Message or signature representative out of range.
    SE_ModExp_OOR = auto()
    SE_RsaPssVerify_Inconsistent = auto()
    # Mismatch of hash of public key modulus.
    FuseHashMismatch = auto()
    XusbDeviceNotAttached = auto()
    XusbPortResetFailed = auto()
    XusbInvalidBmRequest = auto()
    XusbParseConfigDescFail = auto()
    XusbMscInvalidCmd = auto()
    XusbCswStatusCmdFail = auto()
    XusbMscResetRecovery = auto()
    XusbEpStalled = auto()
    XusbEpError = auto()
    XusbEpRetry = auto()
    XusbEpNotReady = auto()
    XusbControlSeqNumError = auto()
    XusbControlDirError = auto()
    XusbOutofSync = auto()
    XusbPortError = auto()
    XusbDisconnected = auto()
    XusbReset = auto()
    UFSResourceMax = auto()
    UFSBootNotEnabled = auto()
    UFSFatalError = auto()
    UFSTRDTimeout = auto()
    UFSTRDInProgress = auto()
    UFSReadError = auto()
    UFSLUNNotEnabled = auto()
    UFSLUNBusy = auto()
    UFSLUNCheckCondition = auto()
    UFSBootLUNNotEnabled = auto()
    UFSFlagSet = auto()
    UFSAttributeWrite = auto()
    UFSBootLUNNotFound = auto()
    UFSBootDMECmdError = auto()
    UFSUnknownSCSIStatus = auto()
    SE_Context_Restore_Failure = auto()
    SecProvisioningBctKeyMismatch = auto()
    SecProvisioningRcmKeyMismatch = auto()
    SecProvisioningDisabled = auto()
    SecProvisioningEnabled = auto()
    SecProvisioningInvalidKeyInput = auto()
    SecProvisioningInvalidAntiCloningKey = auto()
    SecProvisioningAntiCloningKeyDisabled = auto()
    CryptoMgr_Busy = auto()
    CryptoMgr_InitFailure = auto()
    CryptoMgr_VerifyFailure = auto()
    CryptoMgr_InvalidAuthScheme = auto()
    CryptoMgr_InvalidVerifyOp = auto()
    CryptoMgr_InvalidEllipticCurve = auto()
    CryptoMgr_Ecdsa_R_S_Out_Of_Range = auto()
    # R = u1G + u2Q is the point at infinity.
    CryptoMgr_Ecdsa_Invalid_R_is_O = auto()
    CryptoMgr_Ecdsa_Invalid_Sig = auto()
    CryptoMgr_Pcp_Not_Loaded_Not_PK_Mode = auto()
    CryptoMgr_Pcp_Invalid = auto()
    CryptoMgr_Sha_SetupError = auto()
    CryptoMgr_Sha2_Hash_Mismatch = auto()
    CryptoMgr_BchStage1HeaderNotAuth = auto()
    CryptoMgr_BchStage1AuthFail = auto()
    CryptoMgr_BchMb1Stage1HashMismatch = auto()
    CryptoMgr_BchStage2HeaderNotAuth = auto()
    CryptoMgr_BchStage2AuthFail = auto()
    CryptoMgr_BchMb1Stage2HashMismatch = auto()
    CryptoMgr_RcmPayloadAuthFail = auto()
    CryptoMgr_RcmHeaderAuthFail = auto()
    # Not a real error: forces the dispatcher to leave RCM.
    RcmDebugRcm = auto()
    MssGenKeyFail = auto()
    MssDistributeEnable = auto()
    SE_RSA_Signature_Out_Of_Range = auto()
    CryptoMgr_InvalidEcPoint = auto()
    CryptoMgr_InvalidNvAuthScheme = auto()
    CryptoMgr_DecryptionNotEnabled = auto()
    Pka_PointMult_Hw_Error = auto()
    Pka_PointAdd_Hw_Error = auto()
    Pka_PointVerif_Hw_Error = auto()
    Pka_PointVerif_Invalid_Ec_Point = auto()
    Pka_PointShamir_Hw_Error = auto()
    Pka_ModRed_Hw_Error = auto()
    Pka_ModInv_Hw_Error = auto()
    Pka_ModMult_Hw_Error = auto()
    Pka_ModAdd_Hw_Error = auto()
    Pka_MontRInv_Hw_Error = auto()
    Pka_MontMP_Hw_Error = auto()
    Pka_MontRSqr_Hw_Error = auto()
    Unsupported_SHA_Family = auto()
    Unsupported_SHA_DigestSize = auto()
    SeShaDevInit_CryptoContextSetupError = auto()
    SHA_Digest_Calculation_Error = auto()
    Test_AesWriteReadKey_Mismatch = auto()
    Test_AesEncryptTestFailure = auto()
    Test_AesCmacTestFailure = auto()
    BCHSanityCheckError = auto()
    InvalidSeKeySlotNum = auto()
    InvalidSeKeySize = auto()
    Unsupported_RSA_Key_Size = auto()
    Sha2_IntegrityCheck_Fail = auto()
    RsaSsaPss_SignatureVerify_Fail = auto()
    RsaSsaPss_InitFail = auto()
    AesDecrypt_InitFail = auto()
    AesDecrypt_OpFail = auto()
    AesEncrypt_OpFail = auto()
    AesEncrypt_InitFail = auto()
    LoadDebugProdKeys_InvalidMode = auto()
    LoadDebugProdKeys_Fail = auto()
    ProdDebugAllowed_ECID_Mismatch = auto()
    ProdDebugAllowed_InvalidMode = auto()
    ProdDebugAllowed_KeysNotLoaded = auto()
    CryptoMgr_Sc7RfHeaderAuth_InitFail = auto()
    Sc7_InitFail = auto()
    ECID_Mismatch = auto()
    Sc7_DetectRtcRailViolation = auto()
    CB_DetectRtcRailViolationEnable = auto()
    Rng_InitFail = auto()
    Rng_RandomNumberGeneration_Fail = auto()
    SeContext_InitFail = auto()
    SeContextHashMismatch = auto()
    Ecdsa_InitFail = auto()
    Ecdsa_Verification_Fail = auto()
    EdDsa_InitFail = auto()
    EdDsa_VerifyFail = auto()
    RatchetingFail = auto()
    Fault_Injection_Detection = auto()
    Force32 = auto()
    NumErrors = auto()